"""
Image Organizer - sorts pictures into date (and place) folders.

Files are copied into {dest}/YYYY/MM/DD[-City-CC]/, optionally tagged by a
vision model, with the tags written into the picture's EXIF block.
"""

__version__ = "1.0.0"
