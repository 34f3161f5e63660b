"""cap-deploy ams action."""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import logging
from typing import cast

from cap_deploy.deployer import AmsPolicyDeployer

from . import common

_LOGGER = logging.getLogger(__name__)


class AmsAction:
    """cap-deploy AMS policy deployment action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "ams",
                help="Deploy AMS policies",
                description="""Packages the generated DCL policies into a
                    ConfigMap and runs a Job that deploys them to the
                    Authorization Management Service.""",
            ),
        )
        args.add_argument(
            "--cleanup",
            action="store_true",
            help="Clean up the AMS policy deployment",
        )
        common.add_config_flags(args)
        common.add_ams_flags(args)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        cleanup: bool = False,
        context: str | None = None,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        config = common.build_config(**kwargs)
        deployer = AmsPolicyDeployer(config, common.new_client(config, context))
        if cleanup:
            print("Cleaning up AMS policy deployment...")
            await deployer.cleanup()
            print("Cleanup complete")
            return

        common.print_banner(
            "Starting AMS Policy Deployment",
            config,
            ("Generated Policies Directory", config.policies_dir),
        )
        await deployer.run()
        print()
        print("AMS Policy Deployment Complete!")
