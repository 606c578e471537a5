"""Package entry point for ``python -m ptt_relay``.

Delegates to the CLI's main(); see ``ptt_relay.cli`` for subcommands.
"""

from ptt_relay.cli import main

if __name__ == "__main__":
    main()
