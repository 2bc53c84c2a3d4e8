import importlib.util
import sys
from pathlib import Path
import uuid

import pytest

from fnl.fnl_runtime import RuntimeConfig


def _load_repl_module():
    """Dynamically load the top-level fnl_repl.py as a module with a unique name."""
    repl_path = Path(__file__).resolve().parents[1] / "fnl_repl.py"
    mod_name = f"fnl_repl_for_test_{uuid.uuid4().hex}"
    spec = importlib.util.spec_from_file_location(mod_name, str(repl_path))
    mod = importlib.util.module_from_spec(spec)
    sys.modules[mod_name] = mod
    assert spec.loader is not None
    spec.loader.exec_module(mod)
    return mod


def _feed(monkeypatch, mod, lines):
    it = iter(lines)

    async def fake_ainput(prompt: str) -> str:
        try:
            return next(it)
        except StopIteration:
            raise EOFError
    monkeypatch.setattr(mod, "ainput", fake_ainput)


@pytest.mark.asyncio
async def test_repl_quit_immediately(monkeypatch, capsys):
    mod = _load_repl_module()
    _feed(monkeypatch, mod, ["quit"])

    assert await mod.main([]) == 0
    out = capsys.readouterr().out
    assert "FNL REPL v0.1" in out
    assert "Type 'quit' or press Ctrl+D to leave." in out
    assert "Exiting." in out


@pytest.mark.asyncio
async def test_repl_prints_logs(monkeypatch, capsys):
    mod = _load_repl_module()
    _feed(monkeypatch, mod, ['log "hello from fnl"', "log 1 + 2", "quit"])

    await mod.main([])
    out, err = capsys.readouterr()
    assert "hello from fnl\n" in out
    assert "\n3\n" in out
    assert err == ""


@pytest.mark.asyncio
async def test_repl_errors_print_to_stderr(monkeypatch, capsys):
    mod = _load_repl_module()
    _feed(monkeypatch, mod, ["frob 1", "quit"])

    await mod.main([])
    out, err = capsys.readouterr()
    assert "SemanticError: Unknown command 'frob'. Line: 1" in err
    assert "[ Exited application with code 1 ]" in out


@pytest.mark.asyncio
async def test_repl_buffers_until_braces_balance(monkeypatch, capsys):
    mod = _load_repl_module()
    _feed(monkeypatch, mod, ["loop 2 {", '    log "tick"', "}", "quit"])

    await mod.main([])
    out = capsys.readouterr().out
    assert out.count("tick\n") == 2


@pytest.mark.asyncio
async def test_exit_runs_as_a_program_command(monkeypatch, capsys):
    mod = _load_repl_module()
    _feed(monkeypatch, mod, ["exit 4", "exit", 'log "still here"', "quit"])

    await mod.main([])
    out = capsys.readouterr().out
    assert "[ Exited application with code 4 ]" in out
    assert "still here\n" in out


@pytest.mark.asyncio
async def test_repl_eof_quits(monkeypatch, capsys):
    mod = _load_repl_module()
    _feed(monkeypatch, mod, [])

    await mod.main([])
    out = capsys.readouterr().out
    assert "FNL REPL v0.1" in out
    assert "Exiting." in out


def test_brace_balance_ignores_quoted_braces():
    mod = _load_repl_module()
    assert mod.brace_balance("if x {") == 1
    assert mod.brace_balance('log "{"') == 0
    assert mod.brace_balance("}") == -1


@pytest.mark.asyncio
async def test_run_script_file_returns_program_exit_code(tmp_path, capsys):
    mod = _load_repl_module()
    script = tmp_path / "prog.fnl"
    script.write_text('log "from file"\nexit 3\n', encoding="utf-8")

    code = await mod.run_script_file(str(script), RuntimeConfig())
    assert code == 3
    out = capsys.readouterr().out
    assert "from file\n" in out
    assert "[ Exited application with code 3 ]" in out


@pytest.mark.asyncio
async def test_missing_script_file(tmp_path, capsys):
    mod = _load_repl_module()
    with pytest.raises(SystemExit):
        await mod.main([str(tmp_path / "absent.fnl")])
    assert "file not found" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_command_flag_and_store_option(tmp_path, capsys):
    mod = _load_repl_module()
    store = str(tmp_path / "store.yaml")

    assert await mod.main(["--store", store, "-c", 'fnl:idbSet "k" 5']) == 0
    assert await mod.main(["--store", store, "-c", 'log fnl:idbGet "k"']) == 0
    out = capsys.readouterr().out
    assert "5\n" in out
    assert out.count("[ Exited application with code 0 ]") == 2


@pytest.mark.asyncio
async def test_max_depth_option(capsys):
    mod = _load_repl_module()
    code = await mod.main(["--max-depth", "1", "-c", "if true { if true { log 1 } }"])
    assert code == 1
    assert "Maximum recursion depth (1) reached" in capsys.readouterr().err
