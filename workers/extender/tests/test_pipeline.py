"""
test_pipeline — end-to-end builds against the fake toolchain.

Covers the example scenarios:
  1. Two extensions → two libraries, ordered symbols, one executable.
  2. Extension without src/ → no objects, symbol still registered.
  4. Compile failure → build aborts with the tool output, workspace removed.
  5. Duplicate names → duplicate registrations, link fails.
"""
import pytest

from extender.core.pipeline import EngineBuilder
from extender.errors import (
    ConfigurationError,
    ExtenderError,
    ManifestDecodeError,
    TemplateResolutionError,
    ToolchainError,
)
from extender.io.schema import PipelineState

from extender.tests.conftest import GLOBAL_SYMBOLS, PLATFORM, make_config, make_extension


def _builder(config, source_root, workspace_parent, **kwargs):
    return EngineBuilder(config, PLATFORM, source_root, workspace_root=workspace_parent, **kwargs)


class TestSuccessfulBuild:

    def test_two_extensions(self, fake_config, source_root, workspace_parent):
        make_extension(source_root, "a", "extA", {"a.cpp": ""})
        make_extension(source_root, "b", "extB", {"b.cpp": ""})

        with _builder(fake_config, source_root, workspace_parent) as builder:
            exe = builder.build()

            assert builder.state == PipelineState.COMPLETE
            assert exe == builder.workspace.root / "engine.bin"
            assert exe.is_file()
            assert len(builder.libraries) == 2
            assert all(lib.path.is_file() for lib in builder.libraries)
            assert builder.symbols == ["extA", "extB"] + GLOBAL_SYMBOLS

            lines = exe.read_text().splitlines()
            ext_libs = [l.split(" ", 1)[1] for l in lines if l.startswith("EXTLIB ")]
            assert ext_libs == [str(lib.path) for lib in builder.libraries]
            stub_objs = [l for l in lines if l.startswith("OBJ ")]
            assert len(stub_objs) == 2
            assert "ENGINE engine;dlib" in lines

    def test_no_extensions_links_engine_only(self, fake_config, source_root, workspace_parent):
        with _builder(fake_config, source_root, workspace_parent) as builder:
            exe = builder.build()
            assert exe.is_file()
            assert builder.libraries == []
            assert builder.symbols == GLOBAL_SYMBOLS

    def test_extension_without_src(self, fake_config, source_root, workspace_parent):
        make_extension(source_root, "a", "extA", {"a.cpp": ""})
        make_extension(source_root, "b", "headerOnly")

        with _builder(fake_config, source_root, workspace_parent) as builder:
            builder.build()
            libs = {lib.name: lib for lib in builder.libraries}
            assert libs["headerOnly"].objects == []
            assert libs["headerOnly"].path.is_file()
            assert "headerOnly" in builder.symbols

            stub = builder.workspace.root / "stub" / "exported_symbols.cpp"
            assert "    headerOnly();" in stub.read_text()

    def test_state_transitions(self, fake_config, source_root, workspace_parent):
        make_extension(source_root, "a", "extA", {"a.cpp": ""})
        make_extension(source_root, "b", "extB", {"b.cpp": ""})
        with _builder(fake_config, source_root, workspace_parent) as builder:
            builder.build()
            seq = [(t.state, t.detail) for t in builder.receipt.transitions]
        assert seq == [
            (PipelineState.INITIALIZED, None),
            (PipelineState.SCANNING, None),
            (PipelineState.COMPILING, "1/2"),
            (PipelineState.ARCHIVING, "1/2"),
            (PipelineState.COMPILING, "2/2"),
            (PipelineState.ARCHIVING, "2/2"),
            (PipelineState.STUB_GENERATING, None),
            (PipelineState.LINKING, None),
            (PipelineState.COMPLETE, None),
        ]

    def test_receipt(self, fake_config, source_root, workspace_parent):
        make_extension(source_root, "a", "extA", {"a.cpp": "", "b.cpp": ""})
        with _builder(fake_config, source_root, workspace_parent) as builder:
            exe = builder.build()
            receipt = builder.receipt

        assert receipt.status == PipelineState.COMPLETE
        assert receipt.platform == PLATFORM
        assert receipt.error is None
        assert receipt.finished_at is not None
        assert [e.name for e in receipt.extensions] == ["extA"]
        assert len(receipt.extensions[0].objects) == 2
        assert receipt.symbols == ["extA"] + GLOBAL_SYMBOLS
        # 2 extension compiles, 1 archive, 2 stub compiles, 1 link
        assert [i.stage for i in receipt.invocations] == [
            "compile", "compile", "archive", "compile", "compile", "link",
        ]
        assert receipt.artifact is not None
        assert receipt.artifact.path == str(exe)
        assert len(receipt.artifact.sha256) == 64
        assert receipt.artifact.elf is None  # fake linker writes text

    def test_workspace_removed_after_success(self, fake_config, source_root, workspace_parent):
        make_extension(source_root, "a", "extA", {"a.cpp": ""})
        with _builder(fake_config, source_root, workspace_parent) as builder:
            builder.build()
            root = builder.workspace.root
        assert not root.exists()

    def test_parallel_jobs_same_result(self, fake_config, source_root, workspace_parent):
        make_extension(source_root, "a", "extA", {f"f{i}.cpp": "" for i in range(5)})
        with _builder(fake_config, source_root, workspace_parent, jobs=4) as builder:
            builder.build()
            assert [o.name for o in builder.libraries[0].objects] == [
                f"f{i}.cpp_{i}.o" for i in range(5)
            ]

    def test_space_in_path_with_token_templates(self, fake_config, tmp_path, workspace_parent):
        root = tmp_path / "my sources"
        root.mkdir()
        make_extension(root, "a b", "extA", {"a file.cpp": ""})
        with _builder(fake_config, root, workspace_parent) as builder:
            assert builder.build().is_file()


class TestFailedBuild:

    def test_compile_failure(self, fake_config, source_root, workspace_parent):
        make_extension(source_root, "a", "extA", {"a.cpp": "#error"})
        builder = _builder(fake_config, source_root, workspace_parent)
        with pytest.raises(ToolchainError) as exc_info:
            builder.build()

        assert "undefined reference" in str(exc_info.value)
        assert builder.state == PipelineState.FAILED
        assert builder.receipt.error.kind == "TOOLCHAIN"
        assert "undefined reference" in builder.receipt.error.message

        root = builder.workspace.root
        assert root.exists()
        builder.dispose()
        assert not root.exists()

    def test_failure_aborts_remaining_extensions(self, fake_config, source_root, workspace_parent):
        make_extension(source_root, "a", "extA", {"a.cpp": "#error"})
        make_extension(source_root, "b", "extB", {"b.cpp": ""})
        with _builder(fake_config, source_root, workspace_parent) as builder:
            with pytest.raises(ToolchainError):
                builder.build()
            assert builder.libraries == []
            assert len(builder.executor.invocations) == 1

    def test_duplicate_symbols_fail_at_link(self, fake_config, source_root, workspace_parent):
        make_extension(source_root, "a", "dup", {"a.cpp": ""})
        make_extension(source_root, "b", "dup", {"b.cpp": ""})
        with _builder(fake_config, source_root, workspace_parent) as builder:
            with pytest.raises(ToolchainError, match="duplicate symbol: dup"):
                builder.build()
            assert builder.symbols.count("dup") == 2
            assert builder.receipt.transitions[-2].state == PipelineState.LINKING

    def test_manifest_decode_failure(self, fake_config, source_root, workspace_parent):
        bad = source_root / "bad"
        bad.mkdir()
        (bad / "ext.manifest").write_text("version: 2\n")
        with _builder(fake_config, source_root, workspace_parent) as builder:
            with pytest.raises(ManifestDecodeError):
                builder.build()
            assert builder.state == PipelineState.FAILED
            assert builder.executor.invocations == []

    def test_undecodable_manifest_fails_build(self, fake_config, source_root, workspace_parent):
        bad = source_root / "bad"
        bad.mkdir()
        (bad / "ext.manifest").write_bytes(b"name: ext\xff\xfe\n")
        with _builder(fake_config, source_root, workspace_parent) as builder:
            with pytest.raises(ManifestDecodeError):
                builder.build()
            assert builder.state == PipelineState.FAILED
            assert builder.receipt.error.kind == "MANIFEST_DECODE"

    def test_unexpected_error_still_fails(self, fake_config, source_root, workspace_parent, monkeypatch):
        def explode(*args, **kwargs):
            raise ValueError("scanner blew up")

        monkeypatch.setattr("extender.core.pipeline.scan_extensions", explode)
        with _builder(fake_config, source_root, workspace_parent) as builder:
            with pytest.raises(ExtenderError, match="ValueError: scanner blew up"):
                builder.build()
            assert builder.state == PipelineState.FAILED
            assert builder.receipt.error.kind == "INTERNAL"
            assert builder.receipt.finished_at is not None

    def test_template_failure(self, fake_tools, source_root, workspace_parent):
        config = make_config(fake_tools, lib=["{{ python }}", "{{ archiver }}"])
        make_extension(source_root, "a", "extA", {"a.cpp": ""})
        with _builder(config, source_root, workspace_parent) as builder:
            with pytest.raises(TemplateResolutionError, match="archiver"):
                builder.build()
            assert builder.receipt.error.kind == "TEMPLATE_RESOLUTION"

    def test_workspace_removed_after_failure(self, fake_config, source_root, workspace_parent):
        make_extension(source_root, "a", "extA", {"a.cpp": "#error"})
        with pytest.raises(ToolchainError):
            with _builder(fake_config, source_root, workspace_parent) as builder:
                root = builder.workspace.root
                builder.build()
        assert not root.exists()
        assert list(workspace_parent.iterdir()) == []

    def test_no_retry(self, fake_config, source_root, workspace_parent):
        make_extension(source_root, "a", "extA", {"a.cpp": "#error"})
        with _builder(fake_config, source_root, workspace_parent) as builder:
            with pytest.raises(ToolchainError):
                builder.build()
            with pytest.raises(ExtenderError, match="fresh builder"):
                builder.build()

    def test_missing_source_root(self, fake_config, tmp_path, workspace_parent):
        with _builder(fake_config, tmp_path / "absent", workspace_parent) as builder:
            with pytest.raises(ExtenderError):
                builder.build()
            assert builder.receipt.error.kind == "FILESYSTEM"

    def test_unknown_platform(self, fake_config, source_root, workspace_parent):
        with pytest.raises(ConfigurationError, match="Unknown platform"):
            EngineBuilder(fake_config, "nope", source_root, workspace_root=workspace_parent)
        assert not workspace_parent.exists() or list(workspace_parent.iterdir()) == []


class TestIsolation:

    def test_shared_config_independent_workspaces(self, fake_config, source_root, workspace_parent):
        make_extension(source_root, "a", "extA", {"a.cpp": ""})
        with _builder(fake_config, source_root, workspace_parent) as one, \
                _builder(fake_config, source_root, workspace_parent) as two:
            exe_one = one.build()
            exe_two = two.build()
            assert exe_one != exe_two
            assert exe_one.read_text().count("EXTLIB") == exe_two.read_text().count("EXTLIB")
