"""Resgrid dispatch calls to ESO CAD incident XML, over SFTP and Google Sheets."""

__version__ = "1.0.0"
