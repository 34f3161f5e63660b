"""cap-deploy image action."""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import logging
import pathlib
from typing import cast

from cap_deploy.image import DEFAULT_ORG, DEFAULT_REGISTRY, DEFAULT_TAG, ImageBuild

_LOGGER = logging.getLogger(__name__)


class ImageAction:
    """cap-deploy container image build action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "image",
                help="Build the application container image and push it",
                description=f"""Builds the container image from a local
                    directory and pushes it as
                    {DEFAULT_REGISTRY}/<org>/<image>:{DEFAULT_TAG}.""",
            ),
        )
        args.add_argument("--image", required=True, help="Name of the image")
        args.add_argument(
            "--org", default=DEFAULT_ORG, help="Registry organization"
        )
        args.add_argument(
            "--context",
            type=pathlib.Path,
            default=pathlib.Path("."),
            help="Directory containing the Dockerfile",
        )
        args.add_argument("--tag", default=DEFAULT_TAG, help="Image tag")
        args.add_argument(
            "--registry", default=DEFAULT_REGISTRY, help="Container registry"
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        image: str,
        org: str,
        context: pathlib.Path,
        tag: str,
        registry: str,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        build = ImageBuild(
            image=image, org=org, context=context, tag=tag, registry=registry
        )
        print(f"Building image {build.reference}...")
        reference = await build.run()
        print(f"Pushed {reference}")
