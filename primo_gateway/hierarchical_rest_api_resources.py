"""Build an API Gateway resource tree from nested, declarative definitions.

A single definition may name several path segments at once (``"a/b/c"``).
Only the last segment receives the definition's options, methods and
children; the segments before it become plain container resources.
"""
from typing import Any, Mapping, Optional, Protocol, Sequence

from attrs import define, field
from attrs.validators import instance_of
from aws_cdk import aws_apigateway as apigateway

from common.logger import build_logger

logger = build_logger("primo-gateway-resources")


class InvalidDefinition(ValueError):
    """Raised when a resource definition does not name any path segment."""


class ResourceNode(Protocol):
    def add_resource(self, path_part: str, **options: Any) -> "ResourceNode": ...

    def add_method(
        self,
        http_method: str,
        integration: Optional[apigateway.Integration] = None,
        **options: Any,
    ) -> Any: ...


@define(slots=True, frozen=True, kw_only=True)
class MethodDefinition:
    http_method: str = field(validator=instance_of(str))
    integration: Optional[apigateway.Integration] = field(default=None)
    # Keyword arguments for IResource.add_method (authorizer, request_parameters, ...)
    options: Mapping[str, Any] = field(factory=dict)


@define(slots=True, frozen=True, kw_only=True)
class ResourceDefinition:
    path_part: str = field(validator=instance_of(str))
    # Keyword arguments for IResource.add_resource
    options: Mapping[str, Any] = field(factory=dict)
    methods: Sequence[MethodDefinition] = field(factory=tuple)
    children: Sequence["ResourceDefinition"] = field(factory=tuple)

    @property
    def segments(self) -> list[str]:
        return [part for part in self.path_part.split("/") if part]


def _validate(definitions: Sequence[ResourceDefinition]) -> None:
    for definition in definitions:
        if not definition.segments:
            raise InvalidDefinition(
                f"Resource path {definition.path_part!r} has no path segments"
            )
        _validate(definition.children)


def _attach_methods(node: ResourceNode, methods: Sequence[MethodDefinition]) -> None:
    for method in methods:
        node.add_method(method.http_method, method.integration, **method.options)
        logger.debug("Attached method", http_method=method.http_method)


def _expand(
    parent: ResourceNode, definitions: Sequence[ResourceDefinition]
) -> list[ResourceNode]:
    created: list[ResourceNode] = []
    for definition in definitions:
        *containers, last = definition.segments
        next_parent = parent
        for segment in containers:
            next_parent = next_parent.add_resource(segment)
            created.append(next_parent)
            logger.debug("Created container resource", path_part=segment)

        resource = next_parent.add_resource(last, **definition.options)
        created.append(resource)
        logger.debug("Created resource", path_part=last)
        _attach_methods(resource, definition.methods)

        if definition.children:
            created.extend(_expand(resource, definition.children))
    return created


def expand(
    parent: ResourceNode, definitions: Sequence[ResourceDefinition]
) -> list[ResourceNode]:
    """Create the resources described by ``definitions`` below ``parent``.

    Returns every resource created, in pre-order with siblings in definition
    order. ``parent`` itself is not included. All definitions are checked
    before anything is created, so an :class:`InvalidDefinition` leaves the
    tree untouched.
    """
    _validate(definitions)
    return _expand(parent, definitions)


def build(
    root: ResourceNode,
    root_methods: Sequence[MethodDefinition] = (),
    definitions: Sequence[ResourceDefinition] = (),
) -> list[ResourceNode]:
    """Attach ``root_methods`` to ``root`` and expand ``definitions`` below it.

    The returned inventory starts with ``root``.
    """
    _validate(definitions)
    _attach_methods(root, root_methods)
    return [root, *_expand(root, definitions)]


class HierarchicalRestApiResources:
    """Resource tree of a REST API that can keep growing after creation."""

    def __init__(
        self,
        api: apigateway.IRestApi,
        resources: Sequence[ResourceDefinition] = (),
        root_methods: Sequence[MethodDefinition] = (),
    ) -> None:
        self.api = api
        self.root_resource: ResourceNode = api.root
        self._resources = build(self.root_resource, root_methods, resources)
        logger.info("Built API resource tree", resource_count=len(self._resources))

    @property
    def resources(self) -> list[ResourceNode]:
        return list(self._resources)

    def add_resources(self, definitions: Sequence[ResourceDefinition]) -> None:
        self._resources = [
            *self._resources,
            *expand(self.root_resource, definitions),
        ]
