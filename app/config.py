"""
Application configuration
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""
    
    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8080
    API_TITLE: str = "Extender API"
    API_VERSION: str = "0.1.0"
    
    # Build configuration YAML (empty = bundled build.yml)
    EXTENDER_CONFIG: str = ""
    
    # Parent directory for build workspaces (empty = system temp)
    EXTENDER_WORKSPACE_ROOT: str = ""
    
    # Build Defaults
    TOOLCHAIN_TIMEOUT: float = 0  # seconds, 0 = unbounded
    COMPILE_JOBS: int = 1  # concurrent compile processes per extension
    
    @property
    def toolchain_timeout(self) -> float | None:
        """Per-tool timeout, None when unbounded"""
        return self.TOOLCHAIN_TIMEOUT if self.TOOLCHAIN_TIMEOUT > 0 else None
    
    @property
    def workspace_root(self) -> str | None:
        """Workspace parent directory, None for the system temp dir"""
        return self.EXTENDER_WORKSPACE_ROOT or None
    
    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
