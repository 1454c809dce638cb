"""
Coloured progress lines for interactive runs
"""
import sys

import colorama

colorama.init()


class Colors:
    RED = colorama.Fore.RED
    GREEN = colorama.Fore.GREEN
    YELLOW = colorama.Fore.YELLOW
    BLUE = colorama.Fore.BLUE
    CYAN = colorama.Fore.CYAN
    END = colorama.Style.RESET_ALL


SEPARATOR = "-" * 50


def progress(message, color=Colors.CYAN, stream=None):
    """Print a progress line; colours only when writing to a terminal"""
    stream = stream or sys.stdout
    if stream.isatty():
        message = f"{color}{message}{Colors.END}"
    print(message, file=stream)


def separator(stream=None):
    progress(SEPARATOR, color=Colors.BLUE, stream=stream)
