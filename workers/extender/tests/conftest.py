"""
Shared pytest fixtures for extender tests.

The pipeline is exercised against a fake toolchain: three small Python
scripts (compiler, archiver, linker) written to a temp dir and invoked via
``sys.executable``.  They record their inputs in the files they produce,
so tests can assert on exactly what each stage received.

  fake_cc.py  SRC TGT INCLUDES   fails with "undefined reference" if SRC
                                 contains "#error"
  fake_ar.py  TGT OBJS
  fake_ld.py  TGT OBJS LIBS ENGINE_LIBS
                                 fails on a symbol registered twice

List arguments are ';'-joined so the templates can stay in token mode.
A real gcc/g++/ar test config is provided for the integration test.
"""
import shutil
import sys
import textwrap
from pathlib import Path

import pytest

from extender.policy.profile import Configuration

FAKE_CC = textwrap.dedent("""\
    import sys
    src, tgt, includes = sys.argv[1], sys.argv[2], sys.argv[3]
    text = open(src, encoding="utf-8").read()
    if "#error" in text:
        sys.stdout.write(src + ":1: compiling\\n")
        sys.stderr.write(src + ":1: undefined reference to `broken'\\n")
        sys.exit(1)
    with open(tgt, "w", encoding="utf-8") as f:
        f.write("OBJ " + src + "\\n")
        f.write("INC " + includes + "\\n")
""")

FAKE_AR = textwrap.dedent("""\
    import sys
    tgt, objs = sys.argv[1], sys.argv[2]
    with open(tgt, "w", encoding="utf-8") as f:
        f.write("LIB\\n")
        for o in filter(None, objs.split(";")):
            f.write("MEMBER " + o + "\\n")
""")

FAKE_LD = textwrap.dedent("""\
    import re
    import sys
    tgt, objs, libs, engine_libs = sys.argv[1:5]
    registered = []
    for o in filter(None, objs.split(";")):
        src = open(o, encoding="utf-8").readline().split(" ", 1)[1].strip()
        if src.endswith("exported_symbols.cpp"):
            for line in open(src, encoding="utf-8"):
                m = re.match(r"^\\s+(\\w+)\\(\\);$", line)
                if m:
                    registered.append(m.group(1))
    for name in registered:
        if registered.count(name) > 1:
            sys.stderr.write("duplicate symbol: " + name + "\\n")
            sys.exit(1)
    with open(tgt, "w", encoding="utf-8") as f:
        f.write("EXE\\n")
        for o in filter(None, objs.split(";")):
            f.write("OBJ " + o + "\\n")
        for l in filter(None, libs.split(";")):
            f.write("EXTLIB " + l + "\\n")
        f.write("ENGINE " + engine_libs + "\\n")
""")

GLOBAL_SYMBOLS = ["EngineCoreExt", "ScriptExt"]
PLATFORM = "fake-host"


@pytest.fixture(scope="session")
def fake_tools(tmp_path_factory) -> Path:
    """Directory holding the fake compiler, archiver and linker."""
    tools = tmp_path_factory.mktemp("fake toolchain")
    (tools / "fake_cc.py").write_text(FAKE_CC)
    (tools / "fake_ar.py").write_text(FAKE_AR)
    (tools / "fake_ld.py").write_text(FAKE_LD)
    return tools


def make_config(tools: Path, **overrides) -> Configuration:
    platform = {
        "exeExt": ".bin",
        "includes": ["{{ sdk }}/include"],
        "compile": [
            "{{ python }}", "{{ tools }}/fake_cc.py",
            "{{ src }}", "{{ tgt }}", "{{ includes | join(';') }}",
        ],
        "lib": [
            "{{ python }}", "{{ tools }}/fake_ar.py",
            "{{ tgt }}", "{{ objs | join(';') }}",
        ],
        "link": [
            "{{ python }}", "{{ tools }}/fake_ld.py",
            "{{ tgt }}", "{{ objs | join(';') }}",
            "{{ ext_libs | join(';') }}", "{{ libs | join(';') }}",
        ],
        "libPaths": ["{{ sdk }}/lib"],
        "libs": ["engine", "dlib"],
    }
    platform.update(overrides)
    return Configuration.model_validate({
        "binaryName": "engine",
        "context": {"python": sys.executable, "tools": str(tools), "sdk": "/sdk"},
        "exportedSymbols": list(GLOBAL_SYMBOLS),
        "platforms": {PLATFORM: platform},
    })


@pytest.fixture
def fake_config(fake_tools) -> Configuration:
    return make_config(fake_tools)


def make_extension(root: Path, dirname: str, name: str, sources=None) -> Path:
    """Create ``root/dirname`` with a manifest and optional ``src`` files."""
    ext = root / dirname
    ext.mkdir(parents=True, exist_ok=True)
    (ext / "ext.manifest").write_text(f'name: "{name}"\n')
    if sources is not None:
        for rel, content in sources.items():
            p = ext / "src" / rel
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text(content)
    return ext


@pytest.fixture
def source_root(tmp_path) -> Path:
    root = tmp_path / "src_root"
    root.mkdir()
    return root


@pytest.fixture
def workspace_parent(tmp_path) -> Path:
    return tmp_path / "workspaces"


# ── Real toolchain ───────────────────────────────────────────────────────────

@pytest.fixture(scope="session")
def gxx_ok():
    """Skip tests if g++ or ar is not available."""
    if shutil.which("g++") is None or shutil.which("ar") is None:
        pytest.skip("g++/ar not available - install a C++ toolchain to run these tests")


@pytest.fixture
def gxx_config(gxx_ok) -> Configuration:
    return Configuration.model_validate({
        "binaryName": "engine",
        "exportedSymbols": [],
        "platforms": {
            "host": {
                "compile": "g++ -c {% for i in includes %}-I{{ i }} {% endfor %}{{ src }} -o {{ tgt }}",
                "lib": "ar rcs {{ tgt }} {% for o in objs %}{{ o }} {% endfor %}",
                "link": "g++ {% for o in objs %}{{ o }} {% endfor %}-o {{ tgt }} "
                        "{% for l in ext_libs %}{{ l }} {% endfor %}",
            },
        },
    })
