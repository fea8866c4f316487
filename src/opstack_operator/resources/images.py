""" Container images for OP Stack components.
"""

import os

DEFAULT_REGISTRY = "us-docker.pkg.dev/oplabs-tools-artifacts/images"

# component -> (image name, tag, override variable)
DEFAULT_IMAGES = {
    "op-geth": ("op-geth", "v1.101511.0", "OP_GETH_IMAGE"),
    "op-node": ("op-node", "v1.13.3", "OP_NODE_IMAGE"),
    "op-batcher": ("op-batcher", "v1.12.0", "OP_BATCHER_IMAGE"),
    "op-proposer": ("op-proposer", "v1.10.0", "OP_PROPOSER_IMAGE"),
    "op-challenger": ("op-challenger", "v1.5.1", "OP_CHALLENGER_IMAGE"),
}


def get_image_registry():
    return os.getenv("OP_IMAGE_REGISTRY", DEFAULT_REGISTRY).rstrip("/")


def image_for(component):
    """ Full image reference for a component.

    A per-component variable (e.g. OP_NODE_IMAGE) replaces the whole
    reference; OP_IMAGE_REGISTRY only swaps the registry.
    """
    image, tag, override = DEFAULT_IMAGES[component]
    explicit = os.getenv(override)
    if explicit:
        return explicit
    return f"{get_image_registry()}/{image}:{tag}"
