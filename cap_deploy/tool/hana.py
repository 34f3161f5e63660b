"""cap-deploy hana action."""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import logging
from typing import cast

from cap_deploy.deployer import HanaSchemaDeployer

from . import common

_LOGGER = logging.getLogger(__name__)


class HanaAction:
    """cap-deploy HANA schema deployment action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "hana",
                help="Deploy the HANA database schema",
                description="""Runs a Job with the HDI deployer that deploys
                    the generated database artifacts to the HANA container.""",
            ),
        )
        group = args.add_mutually_exclusive_group()
        group.add_argument(
            "--cleanup",
            action="store_true",
            help="Clean up the HANA deployment job",
        )
        group.add_argument(
            "--logs",
            action="store_true",
            help="Show the deployment logs",
        )
        common.add_config_flags(args)
        common.add_hana_flags(args)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        cleanup: bool = False,
        logs: bool = False,
        context: str | None = None,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        config = common.build_config(**kwargs)
        deployer = HanaSchemaDeployer(config, common.new_client(config, context))
        if cleanup:
            print("Cleaning up HANA deployment...")
            await deployer.cleanup()
            print("Cleanup complete")
            return
        if logs:
            print("HANA deployment logs:")
            print(await deployer.logs())
            return

        common.print_banner(
            "Starting HANA Schema Deployment",
            config,
            ("Generated DB Directory", config.db_dir),
            ("HANA Deployer Image", config.hana_deployer_image),
        )
        await deployer.run()
        print()
        print("HANA Schema Deployment Complete!")
