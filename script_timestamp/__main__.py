"""Package entry point for ``python -m script_timestamp``.

WHY: Users run the tool as ``python -m script_timestamp --powershell
--tr <uri> script.ps1``. Python's ``-m`` flag looks for ``__main__.py``
inside the package and executes it.

HOW: Delegates to the CLI's main() and exits with its return code.
"""

import sys

if __name__ == "__main__":
    from script_timestamp.cli import main
    sys.exit(main())
