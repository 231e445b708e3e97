"""Attribute Role Resolver - maps asserted attribute values to local groups."""

import logging
from typing import Iterable, List, Set

from src.domain.models.identity_models import IdentityAssertion, ResolvedRoles
from src.domain.models.mapping_models import MappingRuleSet

logger = logging.getLogger(__name__)


class AttributeRoleResolver:
    """Computes group memberships from identity attributes and mapping rules."""

    def resolve(self, assertion: IdentityAssertion, rules: MappingRuleSet) -> ResolvedRoles:
        """
        Get the groups mapped from the attributes in an assertion.

        Only headers listed in the watched attributes are considered; header
        names and attribute values are compared case-insensitively. Values
        without a mapping are ignored. Default roles are not included.

        Args:
            assertion: Identity asserted for the request
            rules: Active mapping rules

        Returns:
            ResolvedRoles with the mapped groups (possibly empty)
        """
        if not rules.watched_attributes:
            return ResolvedRoles()

        dynamic_roles: Set[str] = set()

        for header, tokens in assertion.attributes.items():
            name = header.strip().lower()
            if name not in rules.watched_attributes:
                continue

            logger.debug(f"Analyzing header \"{header}\" for a mapped role = {list(tokens)}")

            for token in tokens:
                value = token.strip().lower()
                if not value:
                    continue
                groups = rules.groups_for_value(value)
                if groups:
                    logger.debug(f"Mapping role \"{value}\" to \"{','.join(groups)}\"")
                    dynamic_roles.update(groups)

        dynamic_roles.discard("")
        return ResolvedRoles(frozenset(dynamic_roles))

    def effective_roles(
        self,
        assertion: IdentityAssertion,
        rules: MappingRuleSet,
    ) -> ResolvedRoles:
        """Get the default roles together with the attribute-mapped groups."""
        defaults = ResolvedRoles(frozenset(role for role in rules.default_roles if role))
        return defaults.union(self.resolve(assertion, rules))

    def groups_to_purge(
        self,
        assertion: IdentityAssertion,
        rules: MappingRuleSet,
        resolved: ResolvedRoles,
        current_groups: Iterable[str],
    ) -> List[str]:
        """
        Get memberships to revoke under the purge rules.

        A purge rule applies only when the request carries at least one
        value for its attribute; an absent or empty header never revokes
        anything.

        Args:
            assertion: Identity asserted for the request
            rules: Active mapping rules
            resolved: Groups the principal should hold
            current_groups: Groups the principal holds now

        Returns:
            Sorted group names to remove
        """
        if not rules.purge_rules:
            return []

        asserted = {
            header.strip().lower()
            for header, values in assertion.attributes.items()
            if values
        }
        held = set(current_groups)
        purge: Set[str] = set()

        for rule in rules.purge_rules:
            if rule.attribute_name not in asserted:
                continue
            for group_name in rule.group_names:
                if group_name in held and group_name not in resolved:
                    purge.add(group_name)

        return sorted(purge)
