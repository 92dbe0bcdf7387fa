import argparse
import logging


class Tool:
    """Command line sub-tool. Registered in mvmover.TOOLS."""

    def setup_parser(self, parser: argparse.ArgumentParser) -> None:
        raise NotImplementedError()

    def run(self, args: argparse.Namespace, no_dry_run: bool, logger: logging.Logger, working_dir: str) -> None:
        """
            Execute tool for parsed 'args'.
            Nothing may be modified unless 'no_dry_run' is set.
            'working_dir' is private to the tool and removed after run.
        """
        raise NotImplementedError()
