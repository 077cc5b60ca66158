"""
Science domain vocabulary: keyword extraction and topic detection.

The term table is a process-wide constant. It is wrapped in read-only
mappings and tuples and only reachable through the lookup functions below.
"""

from __future__ import annotations

import re
from collections import Counter
from types import MappingProxyType
from typing import List, Mapping, Tuple

from .normalizer import iter_tokens

GENERAL_TOPIC = "general"

_TERMS: dict[str, dict[str, tuple[str, ...]]] = {
    "biology": {
        "cell": ("cellular", "cytoplasm", "nucleus", "organelle", "membrane", "mitochondria", "ribosome"),
        "mitochondria": ("mitochondrion", "powerhouse", "atp", "cellular respiration"),
        "biology": ("biological", "organism", "living", "life", "biotic", "ecosystem"),
        "organism": ("species", "living thing", "creature", "life form"),
        "photosynthesis": ("chlorophyll", "light reaction", "dark reaction", "carbon dioxide", "glucose"),
        "respiration": ("aerobic", "anaerobic", "oxygen", "carbon dioxide", "energy", "atp"),
        "digestion": ("digestive", "stomach", "intestine", "enzyme", "nutrient", "absorption"),
        "circulation": ("circulatory", "heart", "blood", "vessel", "artery", "vein", "capillary"),
        "excretion": ("kidney", "nephron", "urine", "urea", "excretory"),
        "reproduction": ("reproductive", "gamete", "fertilization", "embryo", "offspring"),
        "genetics": ("gene", "dna", "chromosome", "heredity", "inheritance", "trait", "allele"),
        "evolution": ("natural selection", "adaptation", "species", "fossil", "mutation"),
        "ecosystem": ("habitat", "niche", "food chain", "food web", "biodiversity", "environment"),
    },
    "physics": {
        "motion": ("velocity", "acceleration", "speed", "displacement", "distance", "kinematics"),
        "force": ("newton", "friction", "gravity", "tension", "normal", "applied"),
        "energy": ("kinetic", "potential", "mechanical", "thermal", "conservation", "work"),
        "light": ("reflection", "refraction", "lens", "mirror", "wavelength", "frequency", "spectrum"),
        "sound": ("wave", "frequency", "amplitude", "pitch", "echo", "vibration"),
        "electricity": ("current", "voltage", "resistance", "circuit", "conductor", "insulator"),
        "magnetism": ("magnetic field", "pole", "attraction", "repulsion", "compass"),
        "heat": ("temperature", "thermal", "conduction", "convection", "radiation", "calorie"),
    },
    "chemistry": {
        "atom": ("atomic", "proton", "neutron", "electron", "nucleus", "shell", "orbital"),
        "molecule": ("compound", "bond", "covalent", "ionic", "chemical formula"),
        "reaction": ("chemical", "reactant", "product", "equation", "balance", "catalyst"),
        "acid": ("acidic", "ph", "hydrogen ion", "corrosive", "sour"),
        "base": ("alkaline", "hydroxide", "bitter", "neutralization"),
        "periodic": ("element", "period", "group", "atomic number", "atomic mass"),
        "bond": ("ionic bond", "covalent bond", "metallic bond", "hydrogen bond"),
        "solution": ("solute", "solvent", "dissolve", "concentration", "saturated"),
    },
}

# Whole-word cues per topic, checked in this order.
_TOPIC_CUES: dict[str, tuple[str, ...]] = {
    "biology": (
        "cell", "organism", "photosynthesis", "respiration", "digestion",
        "circulation", "reproduction", "genetics", "evolution", "ecosystem",
    ),
    "physics": (
        "motion", "force", "energy", "light", "sound", "electricity",
        "magnetism", "heat", "wave", "velocity", "acceleration",
    ),
    "chemistry": (
        "atom", "molecule", "reaction", "acid", "base", "periodic", "bond",
        "solution", "element", "compound",
    ),
}

DOMAIN_TERMS: Mapping[str, Mapping[str, Tuple[str, ...]]] = MappingProxyType(
    {category: MappingProxyType(dict(concepts)) for category, concepts in _TERMS.items()}
)
TOPICS: Tuple[str, ...] = tuple(_TOPIC_CUES) + (GENERAL_TOPIC,)

_CONCEPTS: Mapping[str, Tuple[str, ...]] = MappingProxyType(
    {concept: related for concepts in _TERMS.values() for concept, related in concepts.items()}
)
_TOPIC_RES = tuple(
    (topic, re.compile(r"\b(?:" + "|".join(cues) + r")\b")) for topic, cues in _TOPIC_CUES.items()
)
_CONCEPT_RES = tuple((concept, re.compile(r"\b" + re.escape(concept))) for concept in _CONCEPTS)


def domain_terms() -> Mapping[str, Tuple[str, ...]]:
    """Read-only view of concept -> related terms across all categories."""
    return _CONCEPTS


def matching_concepts(word: str) -> List[str]:
    """Concepts whose key is contained in ``word`` or contains it."""
    w = word.lower().strip()
    if not w:
        return []
    return [concept for concept in _CONCEPTS if concept in w or w in concept]


def related_terms(word: str) -> Tuple[str, ...]:
    """All related terms of every concept matching ``word``, deduplicated."""
    seen: dict[str, None] = {}
    for concept in matching_concepts(word):
        for term in _CONCEPTS[concept]:
            seen.setdefault(term, None)
    return tuple(seen)


def detect_topic(text: str) -> str:
    """First topic whose cue words occur in ``text``; ``general`` if none do."""
    lower = (text or "").lower()
    for topic, pattern in _TOPIC_RES:
        if pattern.search(lower):
            return topic
    return GENERAL_TOPIC


def extract_keywords(
    text: str,
    max_terms: int = 10,
    max_domain_terms: int = 5,
) -> Tuple[str, ...]:
    """
    Extract an ordered keyword tuple for a passage.

    The most frequent tokens longer than three characters come first (ties in
    order of first appearance), followed by up to ``max_domain_terms``
    vocabulary terms: every concept found in the text contributes its key and
    its first three related terms.
    """
    lower = (text or "").lower()
    counts = Counter(iter_tokens(lower, min_length=4))
    keywords: dict[str, None] = {tok: None for tok, _ in counts.most_common(max_terms)}

    domain: List[str] = []
    for concept, pattern in _CONCEPT_RES:
        if pattern.search(lower):
            domain.append(concept)
            domain.extend(_CONCEPTS[concept][:3])
    added = 0
    for term in domain:
        if added >= max_domain_terms:
            break
        if term in keywords:
            continue
        keywords[term] = None
        added += 1
    return tuple(keywords)
