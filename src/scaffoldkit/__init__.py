"""ScaffoldKit: composable project generators over an in-memory file tree."""

__version__ = "0.1.0"
__author__ = "ScaffoldKit Contributors"
__description__ = "Composable project generators over an in-memory file tree"

from .archive import unzip, zip_directory, zip_tree
from .models import GeneratorDescriptor, Resource, ResourceKind, TransformAction, TransformKind
from .paths import join
from .registry import Generator, GeneratorRegistry, build_registry, default_registry
from .resources import ResourceTree
from .transform import TransformEngine

__all__ = [
    "Generator",
    "GeneratorDescriptor",
    "GeneratorRegistry",
    "Resource",
    "ResourceKind",
    "ResourceTree",
    "TransformAction",
    "TransformEngine",
    "TransformKind",
    "build_registry",
    "default_registry",
    "join",
    "unzip",
    "zip_directory",
    "zip_tree",
]
