from .matcher import AttackSignature, PatternMatcher, SignatureComponent, load_signatures

__all__ = [
    "AttackSignature",
    "PatternMatcher",
    "SignatureComponent",
    "load_signatures",
]
