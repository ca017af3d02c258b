import typing
from importlib.util import find_spec


def has_package(package_name: str) -> bool:
    """Check if a package is installed."""
    return find_spec(package_name) is not None


class DependencyRequired(ImportError):
    """Raised when a required dependency is missing."""

    def __init__(self, *missing_dependencies: typing.Tuple[str, str]):
        message = "The following dependencies are required but missing:\n"
        for name, distribution in missing_dependencies:
            message += f"{name}: Install by running `pip install {distribution}`.\n"
        super().__init__(message)
        self.missing_dependencies = missing_dependencies


def deps_required(dependencies: typing.Mapping[str, str]) -> None:
    """
    Check that the packages a module needs are installed.

    :param dependencies: Mapping of import names to the distribution names
        they are installed from.
    :raises DependencyRequired: If any of the packages are missing.
    """
    missing = [
        (name, distribution)
        for name, distribution in dependencies.items()
        if not has_package(name)
    ]
    if missing:
        raise DependencyRequired(*missing)
