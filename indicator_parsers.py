"""
Indicator parsers for the four tabular statistics providers.

Each provider hands us a flat key -> value record for one geographic level.
Key naming, units, and missing-data sentinels differ per provider:

  - CBS Kerncijfers wijken en buurten (demographics, 84583NED): absolute
    counts with numbered keys (AantalInwoners_5); "." marks suppressed cells.
  - RIVM Gezondheidsmonitor (health, 50120NED): percentages of the adult
    population; "n/a" marks suppressed cells.
  - CBS Leefbaarometer / Veiligheidsmonitor (livability): percentages plus a
    handful of 1-10 report marks and scale scores.
  - Politie geregistreerde criminaliteit (safety, 47018NED): crime-type code
    -> registered count.  "." means "suppressed" and is read as 0, which is
    how the provider publishes zero-count cells.

Every parser returns a list of ParsedIndicator.  Parsers never raise on bad
input: unknown keys pass through under their own name, unparseable values
keep the raw value in original_value with absolute/relative left as None.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from location_data import SourceType

logger = logging.getLogger(__name__)


# =============================================================================
# Parsed value
# =============================================================================

@dataclass(frozen=True)
class ParsedIndicator:
    key: str
    label: str
    original_value: Any
    absolute: Optional[float]
    relative: Optional[float]
    unit: str = ""


# Provider bookkeeping fields present in every record, never indicators.
METADATA_KEYS = frozenset({"ID", "WijkenEnBuurten", "RegioS", "Perioden"})

HEALTH_METADATA_KEYS = METADATA_KEYS | frozenset({
    "Gemeentenaam_1", "SoortRegio_2", "Codering_3", "Leeftijd", "Marges",
})

POPULATION_KEY = "AantalInwoners_5"


# =============================================================================
# Demographics (CBS 84583NED)
# =============================================================================

# Rule kinds
_INFO = "info"          # text field, no numeric forms
_COUNT = "count"        # absolute only
_SHARE = "share"        # absolute + share of a denominator (%)
_RELATIVE = "relative"  # already a percentage / average; relative only


@dataclass(frozen=True)
class DemographicsRule:
    label: str
    kind: str
    denominator: Optional[str] = None
    unit: str = ""


_INWONERS = "AantalInwoners_5"
_HUISHOUDENS = "HuishoudensTotaal_28"
_ONTVANGERS = "AantalInkomensontvangers_70"
_BEDRIJVEN = "BedrijfsvestigingenTotaal_91"
_AUTOS = "PersonenautoSTotaal_99"


def _share(label: str, denominator: str = _INWONERS) -> DemographicsRule:
    return DemographicsRule(label, _SHARE, denominator, "%")


def _rel(label: str, unit: str = "%") -> DemographicsRule:
    return DemographicsRule(label, _RELATIVE, None, unit)


def _count(label: str, unit: str = "") -> DemographicsRule:
    return DemographicsRule(label, _COUNT, None, unit)


DEMOGRAPHICS_RULES: Dict[str, DemographicsRule] = {
    "Gemeentenaam_1": DemographicsRule("Gemeentenaam", _INFO),
    "SoortRegio_2": DemographicsRule("Soort Regio", _INFO),
    "Codering_3": DemographicsRule("Codering", _INFO),
    "IndelingswijzigingWijkenEnBuurten_4": DemographicsRule("Indelingswijziging Wijken En Buurten", _INFO),
    # Population
    "AantalInwoners_5": _count("Aantal Inwoners"),
    "Mannen_6": _share("Mannen"),
    "Vrouwen_7": _share("Vrouwen"),
    "k_0Tot15Jaar_8": _share("0 Tot 15 Jaar"),
    "k_15Tot25Jaar_9": _share("15 Tot 25 Jaar"),
    "k_25Tot45Jaar_10": _share("25 Tot 45 Jaar"),
    "k_45Tot65Jaar_11": _share("45 Tot 65 Jaar"),
    "k_65JaarOfOuder_12": _share("65 Jaar Of Ouder"),
    "Ongehuwd_13": _share("Ongehuwd"),
    "Gehuwd_14": _share("Gehuwd"),
    "Gescheiden_15": _share("Gescheiden"),
    "Verweduwd_16": _share("Verweduwd"),
    "WestersTotaal_17": _share("Westers Totaal"),
    "NietWestersTotaal_18": _share("Niet Westers Totaal"),
    "Marokko_19": _share("Marokko"),
    "NederlandseAntillenEnAruba_20": _share("Nederlandse Antillen En Aruba"),
    "Suriname_21": _share("Suriname"),
    "Turkije_22": _share("Turkije"),
    "OverigNietWesters_23": _share("Overig Niet Westers"),
    "GeboorteTotaal_24": _share("Geboorte Totaal"),
    "GeboorteRelatief_25": _rel("Geboorte Relatief", "per 1000"),
    "SterfteTotaal_26": _count("Sterfte Totaal"),
    "SterfteRelatief_27": _rel("Sterfte Relatief", "per 1000"),
    # Households
    "HuishoudensTotaal_28": _count("Huishoudens Totaal"),
    "Eenpersoonshuishoudens_29": _share("Eenpersoonshuishoudens", _HUISHOUDENS),
    "HuishoudensZonderKinderen_30": _share("Huishoudens Zonder Kinderen", _HUISHOUDENS),
    "HuishoudensMetKinderen_31": _share("Huishoudens Met Kinderen", _HUISHOUDENS),
    "GemiddeldeHuishoudensgrootte_32": _count("Gemiddelde Huishoudensgrootte"),
    # Housing
    "Bevolkingsdichtheid_33": _count("Bevolkingsdichtheid", "per km²"),
    "Woningvoorraad_34": _count("Woningvoorraad"),
    "GemiddeldeWOZWaardeVanWoningen_35": _count("Gemiddelde WOZ Waarde Van Woningen", "x1000"),
    "PercentageEengezinswoning_36": _rel("Percentage Eengezinswoning"),
    "PercentageMeergezinswoning_37": _rel("Percentage Meergezinswoning"),
    "PercentageBewoond_38": _rel("Percentage Bewoond"),
    "PercentageOnbewoond_39": _rel("Percentage Onbewoond"),
    "Koopwoningen_40": _rel("Koopwoningen"),
    "HuurwoningenTotaal_41": _rel("Huurwoningen Totaal"),
    "InBezitWoningcorporatie_42": _rel("In Bezit Woningcorporatie"),
    "InBezitOverigeVerhuurders_43": _rel("In Bezit Overige Verhuurders"),
    "EigendomOnbekend_44": _rel("Eigendom Onbekend"),
    "BouwjaarVoor2000_45": _rel("Bouwjaar Voor 2000"),
    "BouwjaarVanaf2000_46": _rel("Bouwjaar Vanaf 2000"),
    # Energy
    "GemiddeldElektriciteitsverbruikTotaal_47": _rel("Gemiddeld Elektriciteitsverbruik Totaal", "kWh"),
    "Appartement_48": _rel("Appartement (Elektriciteit)", "kWh"),
    "Tussenwoning_49": _rel("Tussenwoning (Elektriciteit)", "kWh"),
    "Hoekwoning_50": _rel("Hoekwoning (Elektriciteit)", "kWh"),
    "TweeOnderEenKapWoning_51": _rel("Twee Onder Een Kap Woning (Elektriciteit)", "kWh"),
    "VrijstaandeWoning_52": _rel("Vrijstaande Woning (Elektriciteit)", "kWh"),
    "Huurwoning_53": _rel("Huurwoning (Elektriciteit)", "kWh"),
    "EigenWoning_54": _rel("Eigen Woning (Elektriciteit)", "kWh"),
    "GemiddeldAardgasverbruikTotaal_55": _rel("Gemiddeld Aardgasverbruik Totaal", "m³"),
    "Appartement_56": _rel("Appartement (Aardgas)", "m³"),
    "Tussenwoning_57": _rel("Tussenwoning (Aardgas)", "m³"),
    "Hoekwoning_58": _rel("Hoekwoning (Aardgas)", "m³"),
    "TweeOnderEenKapWoning_59": _rel("Twee Onder Een Kap Woning (Aardgas)", "m³"),
    "VrijstaandeWoning_60": _rel("Vrijstaande Woning (Aardgas)", "m³"),
    "Huurwoning_61": _rel("Huurwoning (Aardgas)", "m³"),
    "EigenWoning_62": _rel("Eigen Woning (Aardgas)", "m³"),
    "PercentageWoningenMetStadsverwarming_63": _rel("Percentage Woningen Met Stadsverwarming"),
    # Education and work
    "OpleidingsniveauLaag_64": _rel("Opleidingsniveau Laag", ""),
    "OpleidingsniveauMiddelbaar_65": _rel("Opleidingsniveau Middelbaar", ""),
    "OpleidingsniveauHoog_66": _rel("Opleidingsniveau Hoog", ""),
    "Nettoarbeidsparticipatie_67": _rel("Nettoarbeidsparticipatie"),
    "PercentageWerknemers_68": _rel("Percentage Werknemers"),
    "PercentageZelfstandigen_69": _rel("Percentage Zelfstandigen"),
    # Income
    "AantalInkomensontvangers_70": _count("Aantal Inkomensontvangers"),
    "GemiddeldInkomenPerInkomensontvanger_71": _rel("Gemiddeld Inkomen Per Inkomensontvanger", "x1000"),
    "GemiddeldInkomenPerInwoner_72": _rel("Gemiddeld Inkomen Per Inwoner", "x1000"),
    "k_40PersonenMetLaagsteInkomen_73": _rel("40% Personen Met Laagste Inkomen"),
    "k_20PersonenMetHoogsteInkomen_74": _rel("20% Personen Met Hoogste Inkomen"),
    "GemGestandaardiseerdInkomenVanHuish_75": _rel("Gemiddeld Gestandaardiseerd Inkomen Van Huishoudens", "x1000"),
    "k_40HuishoudensMetLaagsteInkomen_76": _rel("40% Huishoudens Met Laagste Inkomen"),
    "k_20HuishoudensMetHoogsteInkomen_77": _rel("20% Huishoudens Met Hoogste Inkomen"),
    "HuishoudensMetEenLaagInkomen_78": _rel("Huishoudens Met Een Laag Inkomen"),
    "HuishOnderOfRondSociaalMinimum_79": _rel("Huishoudens Onder Of Rond Sociaal Minimum"),
    "HuishoudensTot110VanSociaalMinimum_80": _rel("Huishoudens Tot 110% Van Sociaal Minimum"),
    "HuishoudensTot120VanSociaalMinimum_81": _rel("Huishoudens Tot 120% Van Sociaal Minimum"),
    "MediaanVermogenVanParticuliereHuish_82": _rel("Mediaan Vermogen Van Particuliere Huishoudens", "x1000"),
    # Benefits and care
    "PersonenPerSoortUitkeringBijstand_83": _share("Personen Per Soort Uitkering Bijstand", _ONTVANGERS),
    "PersonenPerSoortUitkeringAO_84": _share("Personen Per Soort Uitkering AO", _ONTVANGERS),
    "PersonenPerSoortUitkeringWW_85": _share("Personen Per Soort Uitkering WW", _ONTVANGERS),
    "PersonenPerSoortUitkeringAOW_86": _share("Personen Per Soort Uitkering AOW", _ONTVANGERS),
    "JongerenMetJeugdzorgInNatura_87": _share("Jongeren Met Jeugdzorg In Natura", _ONTVANGERS),
    "PercentageJongerenMetJeugdzorg_88": _rel("Percentage Jongeren Met Jeugdzorg"),
    "WmoClienten_89": _count("Wmo Clienten"),
    "WmoClientenRelatief_90": _rel("Wmo Clienten Relatief", "per 1000"),
    # Business establishments
    "BedrijfsvestigingenTotaal_91": _count("Bedrijfsvestigingen Totaal"),
    "ALandbouwBosbouwEnVisserij_92": _share("A - Landbouw, Bosbouw En Visserij", _BEDRIJVEN),
    "BFNijverheidEnEnergie_93": _share("B-F - Nijverheid En Energie", _BEDRIJVEN),
    "GIHandelEnHoreca_94": _share("G-I - Handel En Horeca", _BEDRIJVEN),
    "HJVervoerInformatieEnCommunicatie_95": _share("H-J - Vervoer, Informatie En Communicatie", _BEDRIJVEN),
    "KLFinancieleDienstenOnroerendGoed_96": _share("K-L - Financiele Diensten, Onroerend Goed", _BEDRIJVEN),
    "MNZakelijkeDienstverlening_97": _share("M-N - Zakelijke Dienstverlening", _BEDRIJVEN),
    "RUCultuurRecreatieOverigeDiensten_98": _share("R-U - Cultuur, Recreatie, Overige Diensten", _BEDRIJVEN),
    # Vehicles
    "PersonenautoSTotaal_99": _count("Personenautos Totaal"),
    "PersonenautoSBrandstofBenzine_100": _share("Personenautos Brandstof Benzine", _AUTOS),
    "PersonenautoSOverigeBrandstof_101": _share("Personenautos Overige Brandstof", _AUTOS),
    "PersonenautoSPerHuishouden_102": _rel("Personenautos Per Huishouden", ""),
    "PersonenautoSNaarOppervlakte_103": _rel("Personenautos Naar Oppervlakte", "per km²"),
    "Motorfietsen_104": _count("Motorfietsen"),
    # Distance to amenities
    "AfstandTotHuisartsenpraktijk_105": _rel("Afstand Tot Huisartsenpraktijk", "km"),
    "AfstandTotGroteSupermarkt_106": _rel("Afstand Tot Grote Supermarkt", "km"),
    "AfstandTotKinderdagverblijf_107": _rel("Afstand Tot Kinderdagverblijf", "km"),
    "AfstandTotSchool_108": _rel("Afstand Tot School", "km"),
    "ScholenBinnen3Km_109": _rel("Scholen Binnen 3 Km", ""),
    # Area
    "OppervlakteTotaal_110": _count("Oppervlakte Totaal", "ha"),
    "OppervlakteLand_111": _count("Oppervlakte Land", "ha"),
    "OppervlakteWater_112": _count("Oppervlakte Water", "ha"),
    "MeestVoorkomendePostcode_113": DemographicsRule("Meest Voorkomende Postcode", _INFO),
    "Dekkingspercentage_114": _rel("Dekkingspercentage"),
    "MateVanStedelijkheid_115": _rel("Mate Van Stedelijkheid", ""),
    "Omgevingsadressendichtheid_116": _rel("Omgevingsadressendichtheid", "per km²"),
}

# Derived indicator: residents without a migration background.
AUTOCHTOON_KEY = "Autochtoon"


# =============================================================================
# Health (RIVM 50120NED)
# =============================================================================

HEALTH_LABELS: Dict[str, str] = {
    "ErvarenGezondheidGoedZeerGoed_4": "Ervaren Gezondheid Goed / Zeer Goed",
    "VoldoetAanBeweegrichtlijn_5": "Voldoet Aan Beweegrichtlijn",
    "WekelijkseSporters_6": "Wekelijkse Sporters",
    "Ondergewicht_7": "Ondergewicht",
    "NormaalGewicht_8": "Normaal Gewicht",
    "Overgewicht_9": "Overgewicht",
    "ErnstigOvergewicht_10": "Ernstig Overgewicht",
    "Roker_11": "Roker",
    "VoldoetAanAlcoholRichtlijn_12": "Voldoet Aan Alcohol Richtlijn",
    "Drinker_13": "Drinker",
    "ZwareDrinker_14": "Zware Drinker",
    "OvermatigeDrinker_15": "Overmatige Drinker",
    "EenOfMeerLangdurigeAandoeningen_16": "Een Of Meer Langdurige Aandoeningen",
    "BeperktVanwegeGezondheid_17": "Beperkt Vanwege Gezondheid",
    "ErnstigBeperktVanwegeGezondheid_18": "Ernstig Beperkt Vanwege Gezondheid",
    "LangdurigErnstigBeperkt_19": "Langdurig Ernstig Beperkt",
    "PsychischeKlachten_20": "Psychische Klachten",
    "ZeerLageVeerkracht_21": "Zeer Lage Veerkracht",
    "ZeerHogeVeerkracht_22": "Zeer Hoge Veerkracht",
    "MistEmotioneleSteun_23": "Mist Emotionele Steun",
    "SuicideGedachtenLaatste12Maanden_24": "Suicide Gedachten Laatste 12 Maanden",
    "HoogRisicoOpAngstOfDepressie_25": "Hoog Risico Op Angst Of Depressie",
    "HeelVeelStressInAfgelopen4Weken_26": "Heel Veel Stress In Afgelopen 4 Weken",
    "Eenzaam_27": "Eenzaam",
    "ErnstigZeerErnstigEenzaam_28": "Ernstig / Zeer Ernstig Eenzaam",
    "EmotioneelEenzaam_29": "Emotioneel Eenzaam",
    "SociaalEenzaam_30": "Sociaal Eenzaam",
    "Mantelzorger_31": "Mantelzorger",
    "Vrijwilligerswerk_32": "Vrijwilligerswerk",
    "MoeiteMetRondkomen_33": "Moeite Met Rondkomen",
    "LopenEnOfFietsenNaarSchoolOfWerk_34": "Lopen En/Of Fietsen Naar School Of Werk",
    "LopenNaarSchoolOfWerk_35": "Lopen Naar School Of Werk",
    "FietsenNaarSchoolOfWerk_36": "Fietsen Naar School Of Werk",
    "NietSpecifiekeKlachten_37": "Niet Specifieke Klachten",
}


# =============================================================================
# Livability (CBS Leefbaarometer / Veiligheidsmonitor)
# =============================================================================

LIVABILITY_LABELS: Dict[str, str] = {
    "OnderhoudStoepenStratenEnPleintjes_1": "Onderhoud Stoepen, Straten En Pleintjes",
    "OnderhoudVanPlantsoenenEnParken_2": "Onderhoud Van Plantsoenen En Parken",
    "Straatverlichting_3": "Straatverlichting",
    "SpeelplekkenVoorKinderen_4": "Speelplekken Voor Kinderen",
    "VoorzieningenVoorJongeren_5": "Voorzieningen Voor Jongeren",
    "FysiekeVoorzieningenSchaalscore_6": "Fysieke Voorzieningen Schaalscore",
    "MensenKennenElkaarNauwelijks_7": "Mensen Kennen Elkaar Nauwelijks",
    "MensenGaanPrettigMetElkaarOm_8": "Mensen Gaan Prettig Met Elkaar Om",
    "GezelligeBuurtWaarMenElkaarHelpt_9": "Gezellige Buurt Waar Men Elkaar Helpt",
    "VoelMijThuisBijMensenInDezeBuurt_10": "Voel Mij Thuis Bij Mensen In Deze Buurt",
    "VeelContactMetAndereBuurtbewoners_11": "Veel Contact Met Andere Buurtbewoners",
    "TevredenMetSamenstellingBevolking_12": "Tevreden Met Samenstelling Bevolking",
    "DurfMijnHuissleutelTeGeven_13": "Durf Mijn Huissleutel Te Geven",
    "MensenSprekenElkaarAanOpGedrag_14": "Mensen Spreken Elkaar Aan Op Gedrag",
    "SocialeCohesieSchaalscore_15": "Sociale Cohesie Schaalscore",
    "VooruitGegaan_16": "Vooruit Gegaan",
    "AchteruitGegaan_17": "Achteruit Gegaan",
    "RapportcijferLeefbaarheidWoonbuurt_18": "Rapportcijfer Leefbaarheid Woonbuurt",
    "OordeelFunctionerenGemeenteAlgemeen_19": "Oordeel Functioneren Gemeente Algemeen",
    "OordeelFunctionerenGemeenteHandhavers_20": "Oordeel Functioneren Gemeente Handhavers",
    "ErvaartEenOfMeerVormenVanOverlast_21": "Ervaart Een Of Meer Vormen Van Overlast",
    "RommelOpStraat_22": "Rommel Op Straat",
    "StraatmeubilairDatVernieldIs_23": "Straatmeubilair Dat Vernield Is",
    "BekladdeMurenOfGebouwen_24": "Bekladde Muren Of Gebouwen",
    "Hondenpoep_25": "Hondenpoep",
    "EenOfMeerVormenFysiekeVerloedering_26": "Een Of Meer Vormen Fysieke Verloedering",
    "DronkenMensenOpStraat_27": "Dronken Mensen Op Straat",
    "VerwardePersonen_28": "Verwarde Personen",
    "Drugsgebruik_29": "Drugsgebruik",
    "Drugshandel_30": "Drugshandel",
    "OverlastDoorBuurtbewoners_31": "Overlast Door Buurtbewoners",
    "MensenWordenOpStraatLastiggevallen_32": "Mensen Worden Op Straat Lastiggevallen",
    "RondhangendeJongeren_33": "Rondhangende Jongeren",
    "EenOfMeerVormenVanSocialeOverlast_34": "Een Of Meer Vormen Van Sociale Overlast",
    "Parkeerproblemen_35": "Parkeerproblemen",
    "TeHardRijden_36": "Te Hard Rijden",
    "AgressiefGedragInVerkeer_37": "Agressief Gedrag In Verkeer",
    "EenOfMeerVormenVanVerkeersoverlast_38": "Een Of Meer Vormen Van Verkeersoverlast",
    "Geluidsoverlast_39": "Geluidsoverlast",
    "Stankoverlast_40": "Stankoverlast",
    "OverlastVanHorecagelegenheden_41": "Overlast Van Horecagelegenheden",
    "EenOfMeerVormenVanMilieuoverlast_42": "Een Of Meer Vormen Van Milieuoverlast",
    "VoeltZichWeleensOnveilig_43": "Voelt Zich Weleens Onveilig",
    "VoeltZichVaakOnveilig_44": "Voelt Zich Vaak Onveilig",
    "VanZakkenrollerij_45": "Van Zakkenrollerij",
    "VanBerovingOpStraat_46": "Van Beroving Op Straat",
    "VanInbraakInWoning_47": "Van Inbraak In Woning",
    "VanMishandeling_48": "Van Mishandeling",
    "VanOplichtingViaInternet_49": "Van Oplichting Via Internet",
    "VoeltZichWeleensOnveiligInBuurt_50": "Voelt Zich Weleens Onveilig In Buurt",
    "VoeltZichVaakOnveiligInBuurt_51": "Voelt Zich Vaak Onveilig In Buurt",
    "SAvondsOpStraatInBuurtOnveilig_52": "'s Avonds Op Straat In Buurt Onveilig",
    "SAvondsAlleenThuisOnveilig_53": "'s Avonds Alleen Thuis Onveilig",
    "DoetSAvondsNietOpen_54": "Doet 's Avonds Niet Open",
    "RijdtOfLooptOm_55": "Rijdt Of Loopt Om",
    "BangSlachtofferCriminaliteitTeWorden_56": "Bang Slachtoffer Criminaliteit Te Worden",
    "DenktDatErVeelCriminaliteitInBuurt_57": "Denkt Dat Er Veel Criminaliteit In Buurt",
    "VindtCriminaliteitInBuurtToegenomen_58": "Vindt Criminaliteit In Buurt Toegenomen",
    "VindtCriminaliteitInBuurtAfgenomen_59": "Vindt Criminaliteit In Buurt Afgenomen",
    "RapportcijferVeiligheidInBuurt_60": "Rapportcijfer Veiligheid In Buurt",
    "DoorOnbekendenOpStraat_61": "Door Onbekenden Op Straat",
    "DoorOnbekendenInOpenbaarVervoer_62": "Door Onbekenden In Openbaar Vervoer",
    "DoorPersoneelVanWinkelsEnBedrijven_63": "Door Personeel Van Winkels En Bedrijven",
    "DoorPersoneelVanOverheidsinstanties_64": "Door Personeel Van Overheidsinstanties",
    "DoorBekendenPartnerFamilieVriend_65": "Door Bekenden, Partner, Familie, Vriend",
    "GediscrimineerdGevoeld_66": "Gediscrimineerd Gevoeld",
}

# Report marks (1-10) and scale scores are not population shares, so no
# absolute head count is derived for them.
_LIVABILITY_SCORE_MARKERS = ("Schaalscore", "Rapportcijfer")


def _livability_unit(key: str) -> str:
    if any(marker in key for marker in _LIVABILITY_SCORE_MARKERS):
        return "score"
    return "%"


# =============================================================================
# Safety (Politie 47018NED)
# =============================================================================

CRIME_KEY_PREFIX = "Crime_"

CRIME_TYPES: Dict[str, str] = {
    "0.0.0": "Totaal misdrijven",
    "1.1.1": "Diefstal/inbraak woning",
    "1.1.2": "Diefstal/inbraak box/garage/schuur",
    "1.2.1": "Diefstal uit/vanaf motorvoertuigen",
    "1.2.2": "Diefstal van motorvoertuigen",
    "1.2.3": "Diefstal van brom-, snor-, fietsen",
    "1.2.4": "Zakkenrollerij",
    "1.2.5": "Diefstal af/uit/van ov. voertuigen",
    "1.3.1": "Ongevallen (weg)",
    "1.4.1": "Zedenmisdrijf",
    "1.4.2": "Moord, doodslag",
    "1.4.3": "Openlijk geweld (persoon)",
    "1.4.4": "Bedreiging",
    "1.4.5": "Mishandeling",
    "1.4.6": "Straatroof",
    "1.4.7": "Overval",
    "1.5.2": "Diefstallen (water)",
    "1.6.1": "Brand/ontploffing",
    "1.6.2": "Overige vermogensdelicten",
    "1.6.3": "Mensenhandel",
    "2.1.1": "Drugs/drankoverlast",
    "2.2.1": "Vernieling cq. zaakbeschadiging",
    "2.4.1": "Burengerucht (relatieproblemen)",
    "2.4.2": "Huisvredebreuk",
    "2.5.1": "Diefstal/inbraak bedrijven enz.",
    "2.5.2": "Winkeldiefstal",
    "2.6.1": "Inrichting Wet Milieubeheer",
    "2.6.2": "Bodem",
    "2.6.3": "Water",
    "2.6.4": "Afval",
    "2.6.5": "Bouwstoffen",
    "2.6.7": "Mest",
    "2.6.8": "Transport gevaarlijke stoffen",
    "2.6.9": "Vuurwerk",
    "2.6.10": "Bestrijdingsmiddelen",
    "2.6.11": "Natuur en landschap",
    "2.6.12": "Ruimtelijke ordening",
    "2.6.13": "Dieren",
    "2.6.14": "Voedselveiligheid",
    "2.7.2": "Bijzondere wetten",
    "2.7.3": "Leefbaarheid (overig)",
    "3.1.1": "Drugshandel",
    "3.1.2": "Mensensmokkel",
    "3.1.3": "Wapenhandel",
    "3.2.1": "Kinderporno",
    "3.2.2": "Kinderprostitutie",
    "3.3.2": "Onder invloed (lucht)",
    "3.3.5": "Lucht (overig)",
    "3.4.2": "Onder invloed (water)",
    "3.5.2": "Onder invloed (weg)",
    "3.5.5": "Weg (overig)",
    "3.6.4": "Aantasting openbare orde",
    "3.7.1": "Discriminatie",
    "3.7.2": "Vreemdelingenzorg",
    "3.7.3": "Maatsch. integriteit (overig)",
    "3.7.4": "Cybercrime",
    "3.9.1": "Horizontale fraude",
    "3.9.2": "Verticale fraude",
    "3.9.3": "Fraude (overig)",
}


def crime_code(key: str) -> str:
    """'Crime_1.1.1' -> '1.1.1'; bare codes are returned trimmed."""
    key = key.strip()
    if key.startswith(CRIME_KEY_PREFIX):
        return key[len(CRIME_KEY_PREFIX):].strip()
    return key


def crime_label(key: str) -> str:
    code = crime_code(key)
    return CRIME_TYPES.get(code, code)


# =============================================================================
# Enum-keyed label lookup
# =============================================================================

KEY_LABELS: Dict[SourceType, Dict[str, str]] = {
    SourceType.DEMOGRAPHICS: {k: rule.label for k, rule in DEMOGRAPHICS_RULES.items()},
    SourceType.HEALTH: dict(HEALTH_LABELS),
    SourceType.LIVABILITY: dict(LIVABILITY_LABELS),
    SourceType.SAFETY: {CRIME_KEY_PREFIX + code: title for code, title in CRIME_TYPES.items()},
}
KEY_LABELS[SourceType.DEMOGRAPHICS][AUTOCHTOON_KEY] = "Autochtoon"


def readable_key(source: SourceType, key: str) -> str:
    """Human label for a provider key; unknown keys come back unchanged."""
    if source == SourceType.SAFETY:
        return crime_label(key)
    return KEY_LABELS.get(source, {}).get(key, key)


def is_known_key(source: SourceType, key: str) -> bool:
    if source == SourceType.SAFETY:
        return crime_code(key) in CRIME_TYPES
    return key in KEY_LABELS.get(source, {})


# =============================================================================
# Numeric helpers
# =============================================================================

def _to_number(value: Any, missing: Tuple[str, ...] = ()) -> Optional[float]:
    """Parse a provider value to float.  None for sentinels and garbage.

    NaN and infinities count as garbage, whether they arrive as floats or
    as strings like "NaN" / "Infinity".
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text or text in missing:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def _round_half_up(x: float) -> int:
    # floor(x + 0.5) rather than round(), which rounds half to even.
    return int(x + 0.5) if x >= 0 else -int(-x + 0.5)


def absolute_from_share(relative: Optional[float], population: Optional[float]) -> Optional[int]:
    """Head count for a percentage-of-population indicator.

    None when either input is missing or the population is zero.
    """
    if relative is None or not population:
        return None
    return _round_half_up(relative * population / 100)


def population_from_raw(raw: Optional[Mapping[str, Any]]) -> Optional[float]:
    """Total population from a demographics record, if usable."""
    if not raw:
        return None
    pop = _to_number(raw.get(POPULATION_KEY), missing=(".",))
    if pop is None or pop <= 0:
        return None
    return pop


# =============================================================================
# Parsers
# =============================================================================

def parse_demographics(raw: Mapping[str, Any]) -> List[ParsedIndicator]:
    """Parse one CBS demographics record."""
    raw = raw or {}
    out: List[ParsedIndicator] = []

    def num(key: str) -> Optional[float]:
        return _to_number(raw.get(key), missing=(".",))

    for key, value in raw.items():
        if key in METADATA_KEYS:
            continue
        rule = DEMOGRAPHICS_RULES.get(key)
        if rule is None:
            out.append(ParsedIndicator(key, key, value, num(key), None))
            continue

        if rule.kind == _INFO:
            text = value.strip() if isinstance(value, str) else value
            out.append(ParsedIndicator(key, rule.label, text, None, None, rule.unit))
        elif rule.kind == _COUNT:
            out.append(ParsedIndicator(key, rule.label, value, num(key), None, rule.unit))
        elif rule.kind == _RELATIVE:
            out.append(ParsedIndicator(key, rule.label, value, None, num(key), rule.unit))
        else:
            absolute = num(key)
            denominator = num(rule.denominator)
            relative = None
            if absolute is not None and denominator:
                relative = absolute / denominator * 100
            out.append(ParsedIndicator(key, rule.label, value, absolute, relative, rule.unit))

    # Derived: residents without a migration background
    inwoners = num(_INWONERS)
    westers = num("WestersTotaal_17")
    niet_westers = num("NietWestersTotaal_18")
    if inwoners and westers is not None and niet_westers is not None:
        autochtoon = inwoners - westers - niet_westers
        out.append(ParsedIndicator(
            AUTOCHTOON_KEY, "Autochtoon", autochtoon,
            autochtoon, autochtoon / inwoners * 100, "%",
        ))
    return out


def _parse_percentage_record(
    raw: Mapping[str, Any],
    labels: Dict[str, str],
    skip: frozenset,
    total_population: Optional[float],
    unit_for=None,
) -> List[ParsedIndicator]:
    out: List[ParsedIndicator] = []
    for key, value in (raw or {}).items():
        if key in skip:
            continue
        label = labels.get(key, key)
        unit = unit_for(key) if unit_for else "%"
        relative = _to_number(value, missing=("n/a", "."))
        absolute = absolute_from_share(relative, total_population) if unit == "%" else None
        out.append(ParsedIndicator(key, label, value, absolute, relative, unit))
    return out


def parse_health(
    raw: Mapping[str, Any],
    total_population: Optional[float] = None,
) -> List[ParsedIndicator]:
    """Parse one RIVM health record.

    Values are percentages of the adult population.  The absolute head count
    is only derived when total_population is known.
    """
    return _parse_percentage_record(raw, HEALTH_LABELS, HEALTH_METADATA_KEYS, total_population)


def parse_livability(
    raw: Mapping[str, Any],
    total_population: Optional[float] = None,
) -> List[ParsedIndicator]:
    return _parse_percentage_record(
        raw, LIVABILITY_LABELS, METADATA_KEYS, total_population, unit_for=_livability_unit,
    )


def parse_safety(
    raw: Mapping[str, Any],
    total_population: Optional[float] = None,
) -> List[ParsedIndicator]:
    """Parse one Politie crime record (crime code -> registered count).

    "." and other unparseable counts become 0: the provider publishes
    zero-count cells that way, and downstream per-capita rates expect a
    number.  relative is crimes per 100 residents when population is known.
    """
    out: List[ParsedIndicator] = []
    for raw_key, value in (raw or {}).items():
        if raw_key in METADATA_KEYS or raw_key == "Codering_3":
            continue
        code = crime_code(raw_key)
        count = _to_number(value)
        if count is None:
            count = 0.0
        relative = count / total_population * 100 if total_population else None
        out.append(ParsedIndicator(
            CRIME_KEY_PREFIX + code,
            CRIME_TYPES.get(code, code),
            value,
            count,
            relative,
            "incidents",
        ))
    return out


PARSERS = {
    SourceType.DEMOGRAPHICS: lambda raw, population=None: parse_demographics(raw),
    SourceType.HEALTH: parse_health,
    SourceType.LIVABILITY: parse_livability,
    SourceType.SAFETY: parse_safety,
}


def parse_record(
    source: SourceType,
    raw: Mapping[str, Any],
    total_population: Optional[float] = None,
) -> List[ParsedIndicator]:
    """Dispatch to the provider parser.  Unexpected failures yield []."""
    parser = PARSERS.get(source)
    if parser is None:
        raise ValueError(f"No indicator parser for source {source!r}")
    try:
        return parser(raw, total_population)
    except Exception:
        logger.warning("Indicator parsing failed for %s", source.value, exc_info=True)
        return []
