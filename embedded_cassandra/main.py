import sys
import time
import logging
from typing import List

from embedded_cassandra.artifact import ArtifactResolver
from embedded_cassandra.errors import CassandraError
from embedded_cassandra.local import app_settings
from embedded_cassandra.log import setup_logging
from embedded_cassandra.supervisor import EmbeddedCassandra, probe
from embedded_cassandra.supervisor.cassandra import default_port_specs

log = logging.getLogger("console")


def resolve_command(args: List[str]) -> int:
    """Downloads (or finds) the archive for a version and prints its path."""
    version = args[0] if args else app_settings.CASSANDRA_VERSION
    path = ArtifactResolver().resolve(
        version, app_settings.ARTIFACT_DIR, app_settings.artifact_urls(version), app_settings.HTTP_PROXY,
        app_settings.CONNECT_TIMEOUT, app_settings.READ_TIMEOUT,
    )
    print(path)
    return 0


def start_command(args: List[str]) -> int:
    """Runs a node in the foreground until interrupted."""
    cassandra = EmbeddedCassandra(args[0] if args else None)
    cassandra.start()
    try:
        while cassandra.is_alive():
            time.sleep(1)
        log.error(f"{cassandra} exited unexpectedly.")
        return 1
    except KeyboardInterrupt:
        log.info("Interrupted by user.")
        return 0
    finally:
        cassandra.stop()


def probe_command(args: List[str]) -> int:
    """Prints the readiness of each configured transport."""
    host = args[0] if args else app_settings.LISTEN_HOST
    for feature, result in probe(default_port_specs(), host).items():
        print(f"{feature}: {result.value}")
    return 0


COMMANDS = {
    "resolve": resolve_command,
    "start": start_command,
    "probe": probe_command,
}


def print_help() -> None:
    print("Usage: embedded-cassandra <command> [args] [--verbose]")
    print("  resolve [version]  Download the distribution archive and print its path")
    print("  start [version]    Run a node in the foreground until Ctrl+C")
    print("  probe [host]       Show the readiness of the configured transports")


def main(argv: List[str] = None) -> int:
    """The main entry point for the command line."""
    args = list(sys.argv[1:] if argv is None else argv)
    verbose = "--verbose" in args
    if verbose:
        args.remove("--verbose")
    setup_logging(logging.DEBUG if verbose else logging.INFO)

    if not args or args[0] not in COMMANDS:
        print_help()
        return 2

    command, command_args = args[0], args[1:]
    log.debug(f"Executing command: {command}, args: {command_args}")
    try:
        return COMMANDS[command](command_args)
    except CassandraError as e:
        log.error(f"{command} failed: {e}", exc_info=verbose)
        return 1


if __name__ == "__main__":
    sys.exit(main())
