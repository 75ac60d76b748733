from __future__ import annotations

from collections import Counter
from typing import Any, Dict, Optional, Tuple

from .models import Animal, GeneticGain

# P = polled (dominant), h = horned (recessive)
HORN_GENOTYPES = ("PP", "Ph", "hh")

_HORN_STATUS_GENOTYPE = {
    "horned": "hh",
    "disbudded": "hh",   # disbudding removes horns, not the alleles
    "polled": "PP",
}

DEFAULT_FERTILITY_SCORE = 5.0


def horn_genotype(animal: Animal) -> Optional[str]:
    """
    Best-known horn genotype: explicit genotype first, else inferred from
    horn status. None if neither is recorded.
    """
    raw = animal.traits.get("horn_genotype")
    if isinstance(raw, str):
        g = _canonical_genotype(raw)
        if g is not None:
            return g
    status = animal.traits.get("horn_status")
    if isinstance(status, str):
        return _HORN_STATUS_GENOTYPE.get(status.strip().lower())
    return None


def _canonical_genotype(raw: str) -> Optional[str]:
    # "Pp"/"pp" notation uses lowercase p for the horned allele
    s = raw.strip().replace("p", "h")
    if len(s) != 2:
        return None
    alleles = sorted(s, key=lambda a: 0 if a == "P" else 1)
    g = "".join(alleles)
    return g if g in HORN_GENOTYPES else None


def is_polled(genotype: Optional[str]) -> bool:
    return genotype is not None and "P" in genotype


def horn_outcomes(sire_genotype: str, dam_genotype: str) -> Dict[str, float]:
    """
    Punnett square over the horn locus: {genotype: probability}.
    """
    counts: Counter = Counter()
    for a in sire_genotype:
        for b in dam_genotype:
            counts["".join(sorted(a + b, key=lambda x: 0 if x == "P" else 1))] += 1
    total = sum(counts.values())
    return {g: counts[g] / total for g in HORN_GENOTYPES if counts[g]}


def _number(v: Any) -> Optional[float]:
    if isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        return float(v)
    if isinstance(v, str):
        try:
            return float(v.strip())
        except ValueError:
            return None
    return None


def fertility_score(animal: Animal) -> Optional[float]:
    return _number(animal.traits.get("fertility_score"))


def coat_color(animal: Animal) -> Optional[str]:
    raw = animal.traits.get("coat_color")
    if isinstance(raw, str) and raw.strip():
        return raw.strip().lower()
    return None


def coat_diversity(animal: Animal, mate: Animal) -> Optional[Tuple[float, str]]:
    """
    Pair-level diversity signal from coat colour: differing colours score
    1.0, matching colours 0.5. None unless both colours are recorded.
    """
    a = coat_color(animal)
    b = coat_color(mate)
    if a is None or b is None:
        return None
    if a != b:
        return 1.0, "adds coat colour variation"
    return 0.5, "same coat colour"


def genetic_gain(animal: Animal, mate: Animal, trait: str) -> Optional[GeneticGain]:
    """
    Mid-parent value of a numeric trait and its improvement (percent) over
    the animal being mated. None if neither parent has a value.
    """
    own = _number(animal.traits.get(trait))
    other = _number(mate.traits.get(trait))
    if own is None and other is None:
        return None
    own_v = own or 0.0
    other_v = other or 0.0
    offspring = (own_v + other_v) / 2
    improvement = ((offspring - own_v) / own_v) * 100 if own_v > 0 else 0.0
    return GeneticGain(trait=trait, value=offspring, improvement=improvement)


_HORN_LABELS = {"PP": "Polled (PP)", "Ph": "Polled carrier (Ph)", "hh": "Horned (hh)"}


def predict_offspring_traits(sire: Animal, dam: Animal) -> Dict[str, str]:
    """
    Simple Mendelian preview of a pairing, for display next to a
    recommendation. Unknown traits are left out, never guessed.
    """
    out: Dict[str, str] = {}

    sire_g = horn_genotype(sire)
    dam_g = horn_genotype(dam)
    if sire_g and dam_g:
        for g, p in horn_outcomes(sire_g, dam_g).items():
            out[f"{p * 100:.0f}% {_HORN_LABELS[g]}"] = "horn status"
        if is_polled(sire_g) and is_polled(dam_g):
            out["Polled x polled"] = "risk of polled-intersex kids"

    sire_c = sire.traits.get("coat_color")
    dam_c = dam.traits.get("coat_color")
    if sire_c and dam_c:
        out["Coat Color"] = sire_c if sire_c == dam_c else f"Mix of {sire_c} and {dam_c}"

    sire_f = fertility_score(sire)
    dam_f = fertility_score(dam)
    if sire_f is not None or dam_f is not None:
        avg = ((sire_f or DEFAULT_FERTILITY_SCORE) + (dam_f or DEFAULT_FERTILITY_SCORE)) / 2
        out["Avg. Fertility Score"] = f"{avg:.1f}"

    gain = genetic_gain(dam, sire, "milk_yield_genetics")
    if gain is not None:
        out["Avg. Milk Yield"] = f"{gain.value:.0f}"

    return out
