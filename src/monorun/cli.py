# cli.py
from __future__ import annotations

import sys
from pathlib import Path

import click
from click.core import ParameterSource

from monorun.config import build_run_config, load_workspace_config
from monorun.errors import RunError, ScriptExecutionError
from monorun.run_command import RunCommand, require_script
from monorun.ui.console import Console
from monorun.workspace import discover_packages, filter_packages, package_globs

# options that map 1:1 onto RunConfig fields
RUN_OPTIONS = (
    "stream",
    "parallel",
    "prefix",
    "sort",
    "bail",
    "concurrency",
    "npm_client",
    "profile",
    "profile_location",
    "reject_cycles",
    "scope",
    "ignore",
)


def _explicit_options(ctx: click.Context) -> dict:
    """Only options the user actually passed; the rest fall back to monorun.json."""
    explicit = {}
    for name in RUN_OPTIONS:
        source = ctx.get_parameter_source(name)
        if source in (ParameterSource.COMMANDLINE, ParameterSource.ENVIRONMENT):
            value = ctx.params[name]
            explicit[name] = list(value) if isinstance(value, tuple) else value
    return explicit


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.pass_context
def cli(ctx, debug):
    """monorun: run a script in every package of a workspace, in dependency order."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["console"] = Console(debug=debug)


@cli.command(context_settings={"ignore_unknown_options": True})
@click.argument("script", required=False, default="")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.option("--cwd", "cwd", default=".", type=click.Path(file_okay=False), help="Workspace root")
@click.option("--scope", multiple=True, help="Only run in packages whose name matches this glob")
@click.option("--ignore", multiple=True, help="Skip packages whose name matches this glob")
@click.option("--stream", is_flag=True, default=False, help="Stream output with lines prefixed by package")
@click.option("--parallel", is_flag=True, default=False, help="Run in all packages at once, ignoring order; implies --stream")
@click.option("--prefix/--no-prefix", default=True, help="Prefix streamed lines with the package name")
@click.option("--sort/--no-sort", default=True, help="Run in dependency order (--no-sort: list order)")
@click.option("--bail/--no-bail", default=True, help="Stop starting new packages after the first failure")
@click.option("--concurrency", type=int, default=None, help="How many packages run at once")
@click.option("--npm-client", "npm_client", default=None, help="Executable used to run scripts (default: npm)")
@click.option("--profile", is_flag=True, default=False, help="Write a performance profile of the run")
@click.option("--profile-location", "profile_location", default=None, help="Directory for the profile file")
@click.option("--reject-cycles", "reject_cycles", is_flag=True, default=False, help="Fail if dependency cycles exist")
@click.pass_context
def run(ctx, script, args, cwd, **_options):
    """Run SCRIPT in every package that declares it. Extra ARGS go to the script."""
    console: Console = ctx.obj["console"]
    root = Path(cwd).resolve()

    try:
        # before workspace discovery
        require_script(script)

        workspace = load_workspace_config(root)
        config = build_run_config(
            workspace.run_defaults(),
            script=script,
            # click already consumed the first `--`; later ones belong to the script
            args=list(args),
            **_explicit_options(ctx),
        )

        packages = discover_packages(root, package_globs(root, workspace))
        packages = filter_packages(packages, scope=config.scope, ignore=config.ignore)
        console.print_debug(f"Filtered packages: {[p.name for p in packages]}")

        result = RunCommand(config, packages, console=console, cwd=root).run()
        sys.exit(result.exit_code)

    except ScriptExecutionError as e:
        # already reported by RunCommand
        sys.exit(e.exit_code)
    except RunError as e:
        console.print_error(e.code, str(e))
        sys.exit(e.exit_code)
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
