"""cap-deploy all action."""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import logging
from typing import cast

from cap_deploy.deployer import deploy_all

from . import common

_LOGGER = logging.getLogger(__name__)


class AllAction:
    """cap-deploy action that deploys every target in order."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "all",
                help="Deploy the HANA schema and then the AMS policies",
                description="""Deploys the HANA schema followed by the AMS
                    policies. The service instances and bindings must already
                    exist, and the application is deployed afterwards.""",
            ),
        )
        common.add_config_flags(args)
        common.add_ams_flags(args)
        common.add_hana_flags(args)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        context: str | None = None,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        config = common.build_config(**kwargs)
        common.print_banner(
            "Starting deployment",
            config,
            ("Generated DB Directory", config.db_dir),
            ("Generated Policies Directory", config.policies_dir),
        )
        results = await deploy_all(config, common.new_client(config, context))
        print()
        for result in results:
            print(f"{result.job_name}: {result.state.value}")
        print("Deployment Complete!")
