import argparse
import asyncio
import sys
from pathlib import Path

from fnl.fnl_runtime import ScriptRunner, RuntimeConfig, ExecutionResult

QUIT_WORD = "quit"


# A basic awaitable input prompt.
async def ainput(prompt: str) -> str:
    loop = asyncio.get_running_loop()
    sys.stdout.write(prompt)
    sys.stdout.flush()
    return await loop.run_in_executor(None, sys.stdin.readline)


def print_result(result: ExecutionResult, banner: bool = True):
    """Replay a run's side effects onto the real stdout/stderr."""
    for effect in result.side_effects:
        if effect.get('topics') == ['stdout']:
            print(effect.get('message', ''))
        elif effect.get('topics') == ['stderr']:
            print(effect.get('message', ''), file=sys.stderr)
    if banner:
        print(result.format_exit())


def brace_balance(text: str) -> int:
    depth = 0
    in_q = False
    for c in text:
        if c == '"':
            in_q = not in_q
        elif not in_q and c == "{":
            depth += 1
        elif not in_q and c == "}":
            depth -= 1
    return depth


async def run_source(source: str, config: RuntimeConfig) -> int:
    runner = ScriptRunner(config=config)
    result = await runner.handle_script(source)
    print_result(result)
    return result.exit_code


async def run_script_file(file_path: str, config: RuntimeConfig) -> int:
    """Run an FNL script file non-interactively; returns the program's exit code."""
    p = Path(file_path)
    try:
        source = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    return await run_source(source, config)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fnl", description="Run FNL programs or start a REPL.")
    parser.add_argument("script", nargs="?", help="FNL source file to run")
    parser.add_argument("-c", dest="command", metavar="SOURCE", help="run SOURCE instead of a file")
    parser.add_argument("--store", help="YAML/JSON file backing fnl:idbGet / fnl:idbSet")
    parser.add_argument("--max-depth", type=int, help="block nesting ceiling (default 5000)")
    parser.add_argument("--debug", action="store_true", default=None, help="trace statements to stderr")
    return parser


async def repl(config: RuntimeConfig):
    print("FNL REPL v0.1")
    print("Type 'quit' or press Ctrl+D to leave.")

    # One runner for the session so the store outlives each run
    runner = ScriptRunner(config=config)
    buffer = []

    while True:
        try:
            raw = await ainput(".. " if buffer else ">> ")
            if raw == "":
                raise EOFError
            line = raw.rstrip("\r\n")

            if not buffer:
                if not line.strip():
                    continue
                # `exit` is an FNL command, so it runs like any other line
                if line.strip() == QUIT_WORD:
                    print("Exiting.")
                    break

            buffer.append(line)
            source = "\n".join(buffer)
            if brace_balance(source) > 0:
                continue
            buffer = []

            result = await runner.handle_script(source)
            print_result(result, banner=result.exit_code != 0 or result.status == 'error')

        except EOFError:
            print("\nExiting.")
            break
        except Exception as e:
            buffer = []
            print(f"Error: {e}", file=sys.stderr)


async def main(argv=None) -> int:
    """Run a script file or `-c` source when given, otherwise start the interactive REPL."""
    args = build_parser().parse_args(sys.argv[1:] if argv is None else argv)
    config = RuntimeConfig.from_env(store_path=args.store, max_depth=args.max_depth, debug=args.debug)

    if args.command is not None:
        return await run_source(args.command, config)
    if args.script:
        return await run_script_file(args.script, config)
    await repl(config)
    return 0


def cli():
    try:
        code = asyncio.run(main())
    except KeyboardInterrupt:
        print("\nExiting.")
        code = 130
    raise SystemExit(code)


if __name__ == "__main__":
    cli()
