"""
Link Graph between movements, XML lines and declaration files.
"""

from .graph import LinkGraph, LinkKey, LinkTarget, xml_link_label

__all__ = ["LinkGraph", "LinkKey", "LinkTarget", "xml_link_label"]
