"""Verbose-gated console logging shared by the core and the CLI."""

VERBOSE = False


def set_verbose(enabled):
    global VERBOSE
    VERBOSE = bool(enabled)


def log(message, *args, **kwargs):
    if VERBOSE:
        print(message, *args, **kwargs)
