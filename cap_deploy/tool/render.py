"""cap-deploy render action."""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import logging
from typing import cast

from cap_deploy.deployer import AmsPolicyDeployer, Deployer, HanaSchemaDeployer

from . import common

_LOGGER = logging.getLogger(__name__)

DEPLOYERS: dict[str, type[Deployer]] = {
    "ams": AmsPolicyDeployer,
    "hana": HanaSchemaDeployer,
}


class RenderAction:
    """cap-deploy action that writes manifests without applying them."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "render",
                help="Write the deployer manifests without applying them",
                description="""Checks the generated artifacts and writes the
                    manifest files. The cluster is not contacted.""",
            ),
        )
        args.add_argument(
            "target",
            choices=sorted(DEPLOYERS),
            help="The deployment to render",
        )
        common.add_config_flags(args)
        common.add_ams_flags(args)
        common.add_hana_flags(args)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        target: str,
        context: str | None = None,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        config = common.build_config(**kwargs)
        deployer = DEPLOYERS[target](config, common.new_client(config, context))
        for path in await deployer.render_only():
            print(path)
