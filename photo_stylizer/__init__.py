"""Photo Stylizer: AI restyling of photos through a credentialed proxy."""

__version__ = "1.0.0"
