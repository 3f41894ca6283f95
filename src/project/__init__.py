"""Generated project: manifest.yaml + suites/ 디렉터리."""

from .manifest import Manifest, ManifestEntry

__all__ = ["Manifest", "ManifestEntry"]
