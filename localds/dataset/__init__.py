from .versions import (
    SUPPORTED_VERSIONS,
    DatasetCompatibilityError,
    DatasetInfo,
    DatasetUrls,
    build_versioned_url,
    get_dataset_info,
    get_dataset_version,
    is_local_mode,
)

__all__ = [
    'SUPPORTED_VERSIONS',
    'DatasetCompatibilityError',
    'DatasetInfo',
    'DatasetUrls',
    'build_versioned_url',
    'get_dataset_info',
    'get_dataset_version',
    'is_local_mode',
]
