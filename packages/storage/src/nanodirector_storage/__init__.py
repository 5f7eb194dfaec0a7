"""Storage backends for Nano Director."""

from nanodirector_storage.storage import (
    ASSETS_DIR,
    AssetBatch,
    CloudFile,
    CloudStore,
    DriveStore,
    LocalStore,
    cloud_filename,
    export_manifest,
    import_manifest,
    is_asset_ref,
    manifest_filename,
    parse_manifest,
    slugify,
)

__all__ = [
    "ASSETS_DIR",
    "AssetBatch",
    "CloudFile",
    "CloudStore",
    "DriveStore",
    "LocalStore",
    "cloud_filename",
    "export_manifest",
    "import_manifest",
    "is_asset_ref",
    "manifest_filename",
    "parse_manifest",
    "slugify",
]
