"""Command line interface: building and serving schema tree models."""

from __future__ import annotations

import argparse
import gc
import logging
import ssl
import sys
import time
import tracemalloc
from collections.abc import Callable
from pathlib import Path
from typing import IO, Any

from .configuration import config_to_workflow, read_config_file
from .datatypes import print_mem_usage
from .server import make_server
from .strategy import Workflow, make_preset_workflow
from .transactions import simple_file_transaction_source, wikidata_dump_transaction_source
from .tree import SchemaTree, create

log = logging.getLogger(__name__)

DEFAULT_WORKFLOW_FILE = "./configuration/Workflow.json"
EXPORT_FORMATS = ("pb",)
OUTPUT_SUFFIX = ".schemaTree.typed"


def build_tree(dataset: str | Path, from_dump: bool = False, export_format: str = "pb") -> Path:
    """Build a model from ``dataset`` and write it next to it; return the output path."""
    if export_format not in EXPORT_FORMATS:
        raise ValueError(f"Format not recognized: {export_format!r}")
    dataset_path = Path(dataset)
    if from_dump:
        source = wikidata_dump_transaction_source(dataset_path)
    else:
        source = simple_file_transaction_source(dataset_path)
    tree = create(source)
    output = dataset_path.with_name(f"{dataset_path.name}{OUTPUT_SUFFIX}.{export_format}")
    with open(output, "wb") as stream:
        tree.save(stream)
    return output


def load_workflow(workflow_file: str | Path | None, model: SchemaTree) -> Workflow:
    """The workflow from a configuration file, or the "best" preset without one."""
    if workflow_file:
        config = read_config_file(workflow_file)
        config.validate()
        workflow = config_to_workflow(config, model)
        log.info("Run Config Workflow %s", workflow_file)
        return workflow
    log.info("Run best Recommender")
    return make_preset_workflow("best", model)


def serve(
    model_path: str | Path,
    port: int = 8080,
    workflow_file: str | Path | None = DEFAULT_WORKFLOW_FILE,
    cert_file: str | None = None,
    key_file: str | None = None,
    hard_limit: int = 500,
) -> None:
    """Load a model and serve recommendations over HTTP (or HTTPS) until interrupted."""
    if bool(cert_file) != bool(key_file):
        raise ValueError("Either both --cert and --key must be set, or neither of them")
    path = Path(model_path)
    log.info("Loading schema (from file %s)", path)
    with open(path, "rb") as stream:
        model = SchemaTree.load(stream)
    print_mem_usage()

    workflow = load_workflow(workflow_file, model)
    server = make_server(model, workflow, hard_limit, "0.0.0.0", port)
    if cert_file and key_file:
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        context.load_cert_chain(cert_file, key_file)
        server.socket = context.wrap_socket(server.socket, server_side=True)
    log.info("Now listening for requests on 0.0.0.0:%d", port)
    with server:
        server.serve_forever()


class _CallProfiler:
    """Deterministic profiler recording call counts and cumulative time per function."""

    def __init__(self) -> None:
        self._stats: dict[tuple[str, int, str], list[float]] = {}
        self._stack: list[tuple[tuple[str, int, str], float]] = []
        self._previous: Any = None

    def __call__(self, frame: Any, event: str, arg: Any) -> None:
        if event == "call":
            code = frame.f_code
            key = (code.co_filename, code.co_firstlineno, code.co_name)
            self._stack.append((key, time.perf_counter()))
        elif event == "return" and self._stack:
            key, started = self._stack.pop()
            entry = self._stats.setdefault(key, [0, 0.0])
            entry[0] += 1
            entry[1] += time.perf_counter() - started

    def enable(self) -> None:
        self._previous = sys.getprofile()
        sys.setprofile(self)

    def disable(self) -> None:
        sys.setprofile(self._previous)

    def dump_stats(self, path: str) -> None:
        ranked = sorted(self._stats.items(), key=lambda kv: kv[1][1], reverse=True)
        with open(path, "w", encoding="utf-8") as stream:
            stream.write("ncalls\tcumtime\tfunction\n")
            for (filename, line, name), (calls, total) in ranked:
                stream.write(f"{int(calls)}\t{total:.6f}\t{filename}:{line}({name})\n")


def _make_tracer(stream: IO[str]) -> Callable[..., None]:
    def tracer(frame: Any, event: str, arg: Any) -> None:
        if event == "call":
            code = frame.f_code
            stream.write(
                f"{time.perf_counter():.6f} {code.co_filename}:{code.co_firstlineno}"
                f" {code.co_name}\n"
            )
        return None

    return tracer


def _run_instrumented(args: argparse.Namespace, command: Callable[[], None]) -> None:
    profiler = _CallProfiler() if args.cpuprofile else None
    trace_file = open(args.trace, "w", encoding="utf-8") if args.trace else None
    start_tracemalloc = bool(args.memprofile) and not tracemalloc.is_tracing()
    if start_tracemalloc:
        tracemalloc.start()
    previous_trace = sys.gettrace()
    started = time.perf_counter()
    if profiler is not None:
        profiler.enable()
    if trace_file is not None:
        sys.settrace(_make_tracer(trace_file))
    try:
        command()
    finally:
        if trace_file is not None:
            sys.settrace(previous_trace)
        if profiler is not None:
            profiler.disable()
        if args.time:
            log.info("Execution Time: %.6fs", time.perf_counter() - started)
        if profiler is not None:
            profiler.dump_stats(args.cpuprofile)
        if args.memprofile:
            gc.collect()
            tracemalloc.take_snapshot().dump(args.memprofile)
            if start_tracemalloc:
                tracemalloc.stop()
        if trace_file is not None:
            trace_file.close()


def _add_global_flags(parser: argparse.ArgumentParser, suppress: bool) -> None:
    text_default: Any = argparse.SUPPRESS if suppress else ""
    flag_default: Any = argparse.SUPPRESS if suppress else False
    parser.add_argument("--cpuprofile", metavar="file", default=text_default,
                        help="write cpu profile to file")
    parser.add_argument("--memprofile", metavar="file", default=text_default,
                        help="write memory profile to file")
    parser.add_argument("--trace", metavar="file", default=text_default,
                        help="write execution trace to file")
    parser.add_argument("-t", "--time", action="store_true", default=flag_default,
                        help="measure time of command execution")


def _port(value: str) -> int:
    port = int(value)
    if not 0 <= port <= 65535:
        raise argparse.ArgumentTypeError(f"invalid port {value}")
    return port


def _run_serve(args: argparse.Namespace) -> None:
    serve(args.model, args.port, args.workflow, args.cert, args.key, args.hard_limit)


def _run_build(args: argparse.Namespace) -> None:
    output = build_tree(args.dataset, args.source == "from-dump", args.export_format)
    log.info("Model written to %s", output)


def _build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    _add_global_flags(common, suppress=True)

    parser = argparse.ArgumentParser(prog="schemarecommender")
    _add_global_flags(parser, suppress=False)
    commands = parser.add_subparsers(dest="command", required=True)

    serve_parser = commands.add_parser(
        "serve", parents=[common], help="Serve a SchemaTree model via an HTTP Server"
    )
    serve_parser.add_argument("model", help="the model file")
    serve_parser.add_argument("-p", "--port", type=_port, default=8080, help="port of http server")
    serve_parser.add_argument("-c", "--cert", default="",
                              help="the location of the certificate file (for TLS)")
    serve_parser.add_argument("-k", "--key", default="",
                              help="the location of the private key file (for TLS)")
    serve_parser.add_argument("-w", "--workflow", default=DEFAULT_WORKFLOW_FILE,
                              help="path to config file that defines the workflow")
    serve_parser.add_argument("--hard_limit", type=int, default=500,
                              help="hard limit of the number of results, -1 for no limit")
    serve_parser.set_defaults(run=_run_serve)

    build_parser = commands.add_parser(
        "build-tree", parents=[common], help="Build the SchemaTree model"
    )
    build_parser.add_argument("--format", dest="export_format", default="pb",
                              help="the format for the export; only 'pb' is supported")
    sources = build_parser.add_subparsers(dest="source", required=True)
    for name, help_text in (
        ("from-dump", "build from a Wikidata JSON dump"),
        ("from-tsv", "build from a file with one transaction per line"),
    ):
        source_parser = sources.add_parser(name, parents=[common], help=help_text)
        source_parser.add_argument("dataset")
        source_parser.set_defaults(run=_run_build)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the command line; return the exit status."""
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    try:
        _run_instrumented(args, lambda: args.run(args))
    except (OSError, ValueError) as error:
        log.error("%s", error)
        return 1
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())