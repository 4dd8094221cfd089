"""Directive extraction from Go doc comments."""

from .directives import (
    AnnotationSet,
    Directive,
    DiscriminatorDirective,
    EnumDirective,
    IgnoreDirective,
    MetaDirective,
    ModelDirective,
    ParametersDirective,
    ResponseDirective,
    ResponseRef,
    RouteDirective,
    StrfmtDirective,
    TypeOverrideDirective,
)
from .extractor import AnnotationExtractor, Site

__all__ = [
    "AnnotationExtractor",
    "AnnotationSet",
    "Directive",
    "DiscriminatorDirective",
    "EnumDirective",
    "IgnoreDirective",
    "MetaDirective",
    "ModelDirective",
    "ParametersDirective",
    "ResponseDirective",
    "ResponseRef",
    "RouteDirective",
    "Site",
    "StrfmtDirective",
    "TypeOverrideDirective",
]
