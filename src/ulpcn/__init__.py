"""ulpcn: read-depth bias correction and integer copy-number correction for ULP-WGS."""

__version__ = "0.1.0"
