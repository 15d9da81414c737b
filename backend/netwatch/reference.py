# netwatch/reference.py
# ------------------------------------------------------------
# Static reference data: provinces, ISPs, ASN table, coverage.
#
# This module is the single owner of the ASN -> ISP mapping.
# Tables are immutable at runtime; bump ASN_TABLE_VERSION when
# editing them.
# ------------------------------------------------------------

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from .models import ISP, Region

ASN_TABLE_VERSION = "2024.1"


# (id, name_en, name_fa, population)
PROVINCES: Tuple[Tuple[str, str, str, int], ...] = (
    ("IR.TH", "Tehran", "تهران", 13000000),
    ("IR.ES", "Isfahan", "اصفهان", 5200000),
    ("IR.FA", "Fars", "فارس", 4900000),
    ("IR.KV", "Razavi Khorasan", "خراسان رضوی", 6400000),
    ("IR.EA", "East Azerbaijan", "آذربایجان شرقی", 3900000),
    ("IR.KZ", "Khuzestan", "خوزستان", 4700000),
    ("IR.AL", "Alborz", "البرز", 2700000),
    ("IR.GI", "Gilan", "گیلان", 2500000),
    ("IR.KE", "Kerman", "کرمان", 3200000),
    ("IR.WA", "West Azerbaijan", "آذربایجان غربی", 3300000),
    ("IR.MN", "Mazandaran", "مازندران", 3300000),
    ("IR.BK", "Kermanshah", "کرمانشاه", 2000000),
    ("IR.MK", "Markazi", "مرکزی", 1400000),
    ("IR.GO", "Golestan", "گلستان", 1900000),
    ("IR.LO", "Lorestan", "لرستان", 1800000),
    ("IR.HD", "Hamadan", "همدان", 1800000),
    ("IR.SM", "Semnan", "سمنان", 700000),
    ("IR.QM", "Qom", "قم", 1300000),
    ("IR.QZ", "Qazvin", "قزوین", 1300000),
    ("IR.KD", "Kurdistan", "کردستان", 1600000),
    ("IR.ZA", "Zanjan", "زنجان", 1100000),
    ("IR.AR", "Ardabil", "اردبیل", 1300000),
    ("IR.SB", "Sistan and Baluchestan", "سیستان و بلوچستان", 2800000),
    ("IR.YA", "Yazd", "یزد", 1100000),
    ("IR.HG", "Hormozgan", "هرمزگان", 1800000),
    ("IR.KS", "North Khorasan", "خراسان شمالی", 900000),
    ("IR.KJ", "South Khorasan", "خراسان جنوبی", 800000),
    ("IR.KB", "Kohgiluyeh", "کهگیلویه و بویراحمد", 700000),
    ("IR.CM", "Chaharmahal", "چهارمحال و بختیاری", 1000000),
    ("IR.BS", "Bushehr", "بوشهر", 1200000),
    ("IR.IL", "Ilam", "ایلام", 600000),
)

# (id, name_en, name_fa, type)
ISPS: Tuple[Tuple[str, str, str, str], ...] = (
    ("mci", "MCI (Hamrah-e Aval)", "همراه اول", "mobile"),
    ("irancell", "Irancell (MTN)", "ایرانسل", "mobile"),
    ("rightel", "Rightel", "رایتل", "mobile"),
    ("tci", "TCI (Mokhaberat)", "مخابرات", "fixed"),
    ("shatel", "Shatel", "شاتل", "fixed"),
    ("asiatech", "Asiatech", "آسیاتک", "fixed"),
    ("pars_online", "Pars Online", "پارس آنلاین", "fixed"),
    ("hiweb", "HiWEB", "های‌وب", "fixed"),
)

# ASN -> ISP id
ASN_TABLE: Mapping[int, str] = MappingProxyType({
    197207: "mci",
    44244: "irancell",
    57218: "rightel",
    58224: "tci",
    12880: "tci",
    31549: "shatel",
    43754: "asiatech",
    16322: "pars_online",
    56402: "hiweb",
})

_NATIONWIDE = ("mci", "irancell", "rightel", "tci")

# region id -> ISPs whose status drives that region.
# Regions missing here fall back to the country-level status.
REGION_ISPS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "IR.TH": _NATIONWIDE + ("shatel", "asiatech", "pars_online", "hiweb"),
    "IR.ES": _NATIONWIDE + ("shatel", "asiatech", "pars_online"),
    "IR.FA": _NATIONWIDE + ("shatel", "asiatech"),
    "IR.KV": _NATIONWIDE + ("shatel", "asiatech"),
    "IR.EA": _NATIONWIDE + ("shatel", "pars_online"),
    "IR.KZ": _NATIONWIDE + ("asiatech",),
    "IR.AL": _NATIONWIDE + ("shatel", "asiatech", "hiweb"),
    "IR.QM": _NATIONWIDE,
    "IR.GI": _NATIONWIDE,
    "IR.MN": _NATIONWIDE,
})


@dataclass(frozen=True)
class ReferenceData:
    """
    Immutable bundle of the lookup tables used by one aggregator.
    Tests build their own instead of patching module globals.
    """

    regions: Tuple[Tuple[str, str, str, Optional[int]], ...] = PROVINCES
    isps: Tuple[Tuple[str, str, str, str], ...] = ISPS
    asn_table: Mapping[int, str] = field(default_factory=lambda: ASN_TABLE)
    region_isps: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: REGION_ISPS)
    version: str = ASN_TABLE_VERSION
    asns_by_isp: Dict[str, List[int]] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        by_isp: Dict[str, List[int]] = {}
        for asn, isp_id in self.asn_table.items():
            by_isp.setdefault(isp_id, []).append(asn)
        object.__setattr__(self, "asns_by_isp", by_isp)

    def isp_for_asn(self, asn: Optional[int]) -> Optional[str]:
        if asn is None:
            return None
        return self.asn_table.get(asn)

    def build_regions(self) -> List[Region]:
        return [
            Region(id=rid, name_en=en, name_fa=fa, population=pop)
            for rid, en, fa, pop in self.regions
        ]

    def build_isps(self) -> List[ISP]:
        return [
            ISP(id=iid, name_en=en, name_fa=fa, type=kind, asns=sorted(self.asns_by_isp.get(iid, [])))
            for iid, en, fa, kind in self.isps
        ]

    def display_name(self, entity_id: str, language: str = "en") -> Optional[str]:
        for rid, en, fa, _ in self.regions:
            if rid == entity_id:
                return fa if language == "fa" else en
        for iid, en, fa, _ in self.isps:
            if iid == entity_id:
                return fa if language == "fa" else en
        return None


DEFAULT_REFERENCE = ReferenceData()
