"""
legal_catalog.py — SamvidhanAI
Curated Indian-law reference topics and the keyword scorer that picks one.

Each topic bundles lowercase keywords (English and Hindi), a canned markdown
explanation and its statutory citations. The catalog is built once at import
and never mutated, so request handlers share it without locking.

Matching (match_topic):
  - score(topic) = sum of len(keyword) for every keyword found as a
    case-insensitive substring of the query
  - highest non-zero score wins; ties go to the topic listed first
  - longer phrases therefore outweigh short generic words
"""

from dataclasses import dataclass
from typing import Optional, Sequence


@dataclass(frozen=True)
class Topic:
    key: str
    title: str
    keywords: tuple[str, ...]
    response: str
    citations: tuple[str, ...]


@dataclass(frozen=True)
class MatchResult:
    topic: Optional[Topic]
    score: int = 0

    @property
    def matched(self) -> bool:
        return self.topic is not None


NO_MATCH = MatchResult(topic=None, score=0)


def _topic(key: str, title: str, keywords: Sequence[str], response: str, citations: Sequence[str]) -> Topic:
    keywords = tuple(k.strip().lower() for k in keywords if k.strip())
    if not keywords:
        raise ValueError(f"Topic {key!r} has no keywords")
    if not response.strip():
        raise ValueError(f"Topic {key!r} has an empty response")
    return Topic(key=key, title=title, keywords=keywords, response=response, citations=tuple(citations))


# ---------------------------------------------------------------------------
# Reference topics
# ---------------------------------------------------------------------------

LEGAL_TOPICS: tuple[Topic, ...] = (
    # ── Constitution, Part III ───────────────────────────────────────────────
    _topic(
        "fundamental_rights",
        "Fundamental Rights",
        ["fundamental rights", "basic rights", "मौलिक अधिकार", "right to equality",
         "right to freedom", "article 14", "article 19", "article 21"],
        (
            "**Fundamental Rights under the Indian Constitution (Part III)**\n\n"
            "Six Fundamental Rights are guaranteed to every citizen:\n\n"
            "1. **Right to Equality (Articles 14-18):** equality before law; no discrimination on grounds of "
            "religion, race, caste, sex or place of birth; untouchability and titles abolished.\n"
            "2. **Right to Freedom (Articles 19-22):** speech and expression, assembly, association, movement, "
            "residence and profession; safeguards against arbitrary arrest and detention.\n"
            "3. **Right against Exploitation (Articles 23-24):** trafficking, forced labour and child labour in "
            "hazardous work are prohibited.\n"
            "4. **Freedom of Religion (Articles 25-28):** freedom of conscience and to profess, practise and "
            "propagate religion.\n"
            "5. **Cultural and Educational Rights (Articles 29-30):** minorities may conserve their culture and "
            "run their own educational institutions.\n"
            "6. **Right to Constitutional Remedies (Article 32):** move the Supreme Court directly for a writ of "
            "Habeas Corpus, Mandamus, Prohibition, Certiorari or Quo Warranto."
        ),
        ["Article 14 - Right to Equality",
         "Article 19 - Right to Freedom",
         "Article 21 - Right to Life and Personal Liberty",
         "Article 32 - Right to Constitutional Remedies",
         "Part III - Constitution of India"],
    ),
    # ── FIR / police complaint ───────────────────────────────────────────────
    _topic(
        "fir",
        "Filing an FIR",
        ["fir", "police complaint", "file complaint", "पुलिस शिकायत", "एफआईआर",
         "first information report", "lodge fir", "police report"],
        (
            "**How to File an FIR (First Information Report) in India**\n\n"
            "An FIR is the written record the police prepare on receiving information about a cognizable "
            "offence. It sets the criminal process in motion.\n\n"
            "**Steps:**\n"
            "1. Go to the nearest police station. Anyone may report, victim or not.\n"
            "2. Tell the Station House Officer what happened: date, time, place and any description of the "
            "accused.\n"
            "3. The officer must reduce it to writing; any language is acceptable.\n"
            "4. Read it before signing. You are entitled to a free copy.\n"
            "5. **Zero FIR:** under Section 173 BNSS an FIR can be lodged at ANY police station, whatever the "
            "jurisdiction.\n\n"
            "**If the police refuse:**\n"
            "- Send a written complaint to the Superintendent of Police.\n"
            "- Apply to the Judicial Magistrate under Section 175(3) BNSS.\n"
            "- Use the state police e-FIR portal.\n\n"
            "**Note:** a false FIR is punishable under Section 211 BNS."
        ),
        ["Section 173 BNSS - Information in Cognizable Cases",
         "Section 175(3) BNSS - Magistrate Power",
         "Section 211 BNS - False Charge of Offence",
         "Lalita Kumari v. Govt. of U.P. (2014) - Mandatory FIR Registration"],
    ),
    # ── Divorce ──────────────────────────────────────────────────────────────
    _topic(
        "divorce",
        "Divorce",
        ["divorce", "तलाक", "marriage dissolution", "divorce process", "mutual divorce",
         "contested divorce", "विवाह विच्छेद"],
        (
            "**Divorce Laws in India**\n\n"
            "1. **Mutual consent (Section 13-B, Hindu Marriage Act):** both spouses agree, have lived apart for "
            "at least one year, and file two motions six months apart. The Supreme Court may waive the "
            "cooling-off period in exceptional cases.\n"
            "2. **Contested (Section 13, HMA):** grounds include adultery, cruelty, desertion for 2+ years, "
            "conversion, unsoundness of mind and incurable disease.\n\n"
            "**Other personal laws:** Muslim law (talaq, khula, mubarat, judicial divorce); Christians under "
            "the Indian Divorce Act, 1869; inter-faith marriages under the Special Marriage Act, 1954.\n\n"
            "**Maintenance:** a wife may claim maintenance under Section 144 BNSS (old Section 125 CrPC). "
            "Custody follows the welfare of the child.\n\n"
            "**Process:** petition in Family Court, notice, reply, mediation, trial, decree."
        ),
        ["Section 13 - Hindu Marriage Act, 1955",
         "Section 13-B - Mutual Consent Divorce",
         "Section 125 CrPC / Section 144 BNSS - Maintenance",
         "Special Marriage Act, 1954",
         "Indian Divorce Act, 1869"],
    ),
    # ── Consumer protection ──────────────────────────────────────────────────
    _topic(
        "consumer_rights",
        "Consumer Rights",
        ["consumer rights", "consumer complaint", "उपभोक्ता", "consumer protection",
         "product defect", "defective product", "consumer court", "consumer forum"],
        (
            "**Consumer Rights & the Consumer Protection Act, 2019**\n\n"
            "**Six rights:** safety, information, choice, to be heard, to seek redressal, and consumer "
            "education.\n\n"
            "**Where to complain:**\n"
            "1. District Commission: claims up to ₹1 crore\n"
            "2. State Commission: ₹1 crore to ₹10 crore\n"
            "3. National Commission: above ₹10 crore\n\n"
            "**Filing:** online at edaakhil.nic.in or consumerhelpline.gov.in, within 2 years of the cause "
            "of action. A lawyer is optional. Fees are nominal.\n\n"
            "**E-commerce** purchases are covered; platforms can be made parties.\n\n"
            "**National Consumer Helpline:** 1800-11-4000 (toll-free)."
        ),
        ["Consumer Protection Act, 2019",
         "Section 34 - District Consumer Forum",
         "Section 47 - State Commission",
         "Section 58 - National Commission",
         "E-Commerce Rules, 2020"],
    ),
    # ── Tenancy ──────────────────────────────────────────────────────────────
    _topic(
        "tenancy",
        "Tenant Rights",
        ["tenant", "rent", "landlord", "eviction", "किराया", "किरायेदार", "मकान मालिक",
         "rental agreement", "tenant rights"],
        (
            "**Tenant Rights in India**\n\n"
            "1. **Written agreement:** insist on a registered rent agreement; oral terms are hard to enforce.\n"
            "2. **Security deposit:** capped at two months' rent for residential premises under the Model "
            "Tenancy Act, 2021.\n"
            "3. **Eviction:** only with proper notice and a valid ground such as unpaid rent, unauthorised "
            "subletting, misuse, the landlord's bona fide need, or unsafe premises.\n"
            "4. **Essential services:** water and electricity cannot be cut to force you out.\n"
            "5. **Rent increases:** only as the agreement allows.\n"
            "6. **Privacy:** the landlord must give reasonable notice before entering.\n\n"
            "**If illegally evicted:** complain to the police, approach the Rent Controller or civil court, "
            "or invoke Section 441 BNS (criminal trespass). Rent Authorities decide disputes within 60 days."
        ),
        ["Model Tenancy Act, 2021",
         "Transfer of Property Act, 1882 - Section 106",
         "Section 441 BNS - Criminal Trespass",
         "Rent Control Acts (State-specific)",
         "Registration Act, 1908"],
    ),
    # ── Criminal law (BNS) ───────────────────────────────────────────────────
    _topic(
        "criminal_law",
        "Criminal Law (BNS)",
        ["ipc", "criminal", "bns", "bharatiya nyaya", "punishment", "offence", "crime",
         "अपराध", "दंड", "murder", "theft", "assault"],
        (
            "**Criminal Law — Bharatiya Nyaya Sanhita (BNS), 2023**\n\n"
            "The BNS replaced the Indian Penal Code on 1 July 2024.\n\n"
            "**Key offences:**\n"
            "- Murder (Section 101): death or life imprisonment, and fine\n"
            "- Attempt to murder (Section 109): up to 10 years, and fine\n"
            "- Kidnapping (Section 137): up to 7 years, and fine\n"
            "- Theft (Section 303): up to 3 years, or fine, or both\n"
            "- Robbery (Section 309): up to 10 years, and fine\n"
            "- Cheating (Section 318): up to 3 years, and fine\n"
            "- Criminal intimidation (Section 351): up to 2 years, and fine\n\n"
            "Organised crime (Section 111) and terrorism (Section 113) are defined for the first time.\n\n"
            "**Bail:** under the BNSS bail is a right for offences punishable up to 3 years; for graver "
            "offences it is at the court's discretion."
        ),
        ["Bharatiya Nyaya Sanhita (BNS), 2023",
         "Section 101 BNS - Murder",
         "Section 303 BNS - Theft",
         "Section 318 BNS - Cheating",
         "Bharatiya Nagarik Suraksha Sanhita (BNSS), 2023"],
    ),
    # ── Property & succession ────────────────────────────────────────────────
    _topic(
        "property",
        "Property & Succession",
        ["property", "land", "succession", "inheritance", "will", "संपत्ति", "जमीन",
         "उत्तराधिकार", "वसीयत", "property dispute", "land dispute"],
        (
            "**Property Law in India**\n\n"
            "**Modes of transfer:** sale, gift (must be registered), will, and inheritance.\n\n"
            "**Hindu Succession Act, 1956 (amended 2005):** daughters are coparceners with equal rights in "
            "ancestral property; self-acquired property may be willed freely.\n\n"
            "**Registration:** transfers of immovable property worth over ₹100 must be registered under the "
            "Registration Act, 1908. Stamp duty is set by each state.\n\n"
            "**Disputes:** civil suit, revenue courts for land records, RERA for builder-buyer matters.\n\n"
            "Before buying, verify title, the encumbrance certificate and pending litigation."
        ),
        ["Transfer of Property Act, 1882",
         "Hindu Succession Act, 1956 (Amendment 2005)",
         "Registration Act, 1908",
         "Indian Succession Act, 1925",
         "RERA Act, 2016"],
    ),
    # ── Cyber crime ──────────────────────────────────────────────────────────
    _topic(
        "cyber_crime",
        "Cyber Crime",
        ["cyber crime", "online fraud", "hacking", "साइबर अपराध", "ऑनलाइन धोखाधड़ी",
         "identity theft", "cyber bullying", "data privacy", "it act"],
        (
            "**Cyber Crime Laws in India**\n\n"
            "**Information Technology Act, 2000:**\n"
            "- Hacking (Section 66): up to 3 years, fine up to ₹5 lakh\n"
            "- Identity theft (Section 66C): up to 3 years, fine up to ₹1 lakh\n"
            "- Obscene material (Section 67): up to 5 years, fine up to ₹10 lakh\n"
            "- Corporate data breach (Section 43A): compensation to victims\n\n"
            "**Report it:** cybercrime.gov.in, helpline **1930**, or the cyber cell of your police station.\n\n"
            "**Digital Personal Data Protection Act, 2023:** consent-based processing; penalties up to "
            "₹250 crore.\n\n"
            "Never share OTPs or PINs. Report unauthorised transactions to your bank within 3 days."
        ),
        ["Information Technology Act, 2000",
         "Section 66 IT Act - Hacking",
         "Section 66C IT Act - Identity Theft",
         "Digital Personal Data Protection Act, 2023",
         "RBI Circular on Digital Fraud"],
    ),
    # ── Labour ───────────────────────────────────────────────────────────────
    _topic(
        "labour",
        "Labour & Employment",
        ["labour", "labor", "employment", "salary", "wages", "termination", "वेतन", "नौकरी",
         "रोजगार", "minimum wage", "working hours", "pf", "provident fund", "gratuity"],
        (
            "**Labour Laws in India — the four Labour Codes**\n\n"
            "1. **Code on Wages, 2019:** minimum wage for all workers; equal pay regardless of gender; wages "
            "due by the 7th of each month.\n"
            "2. **Industrial Relations Code, 2020:** retrenchment compensation of 15 days' pay per year of "
            "service; government permission for layoffs in units of 300+ workers; 14 days' strike notice.\n"
            "3. **Code on Social Security, 2020:** PF at 12% from each side; gratuity of 15 days' wages per "
            "year after 5 years; ESI up to ₹21,000 per month.\n"
            "4. **OSH Code, 2020:** 8-hour working day; overtime at twice the normal rate; one day of annual "
            "leave for every 20 days worked.\n\n"
            "**Wrongful termination:** approach the Labour Court or Industrial Tribunal within 3 years."
        ),
        ["Code on Wages, 2019",
         "Industrial Relations Code, 2020",
         "Social Security Code, 2020",
         "Occupational Safety Code, 2020",
         "Payment of Gratuity Act, 1972"],
    ),
    # ── RTI ──────────────────────────────────────────────────────────────────
    _topic(
        "rti",
        "Right to Information",
        ["rti", "right to information", "सूचना का अधिकार", "information act",
         "government information", "public information"],
        (
            "**Right to Information (RTI) Act, 2005**\n\n"
            "Any citizen may ask a public authority for information; no reasons are needed.\n\n"
            "**How to file:** online at rtionline.gov.in for central bodies, or a plain-paper application to "
            "the Public Information Officer with a ₹10 fee. BPL applicants pay nothing.\n\n"
            "**Timelines:** 30 days normally; 48 hours where life or liberty is involved; 40 days where a "
            "third party is concerned.\n\n"
            "**Appeals:** first appeal to the senior officer within 30 days; second appeal to the Information "
            "Commission within 90 days.\n\n"
            "**Penalty:** ₹250 per day, up to ₹25,000, on a PIO who withholds information without cause.\n\n"
            "**Exemptions (Section 8):** national security, personal privacy, cabinet papers, trade secrets."
        ),
        ["Right to Information Act, 2005",
         "Section 6 - Application for Information",
         "Section 7 - Disposal of Request",
         "Section 8 - Exemptions",
         "Section 20 - Penalties"],
    ),
    # ── Women's protection ───────────────────────────────────────────────────
    _topic(
        "women_protection",
        "Women's Protection",
        ["women", "domestic violence", "dowry", "harassment", "sexual harassment", "महिला",
         "घरेलू हिंसा", "दहेज", "उत्पीड़न", "posh", "workplace harassment"],
        (
            "**Laws Protecting Women in India**\n\n"
            "1. **Protection of Women from Domestic Violence Act, 2005:** covers physical, emotional, sexual, "
            "verbal and economic abuse. Relief includes protection, residence, monetary and custody orders. "
            "Approach the Protection Officer or Magistrate.\n"
            "2. **Dowry Prohibition Act, 1961:** giving or taking dowry carries up to 5 years. Dowry death "
            "(Section 80 BNS) carries 7 years to life.\n"
            "3. **POSH Act, 2013:** every workplace with 10+ employees needs an Internal Complaints "
            "Committee; complain within 3 months.\n"
            "4. **Section 74 BNS:** assault to outrage modesty, up to 5 years.\n\n"
            "**Helplines:** Women 181, NCW 7827-170-170, Emergency 112."
        ),
        ["Protection of Women from Domestic Violence Act, 2005",
         "Dowry Prohibition Act, 1961",
         "POSH Act, 2013",
         "Section 63 BNS - Rape",
         "Section 74 BNS - Assault on Woman"],
    ),
)


def get_topic(key: str) -> Optional[Topic]:
    return next((t for t in LEGAL_TOPICS if t.key == key), None)


# ---------------------------------------------------------------------------
# Context matcher
# ---------------------------------------------------------------------------


def score_topic(query: str, topic: Topic) -> int:
    q = query.lower()
    return sum(len(k) for k in topic.keywords if k in q)


def match_topic(query: str, topics: Sequence[Topic] = LEGAL_TOPICS) -> MatchResult:
    """Return the single best-scoring topic, or NO_MATCH."""
    if not query or not query.strip():
        return NO_MATCH

    best: Optional[Topic] = None
    best_score = 0
    for topic in topics:
        score = score_topic(query, topic)
        # strict '>' keeps the earliest topic on ties
        if score > best_score:
            best, best_score = topic, score

    if best is None:
        return NO_MATCH
    return MatchResult(topic=best, score=best_score)


def build_context(topic: Topic) -> str:
    """Inline a topic as a prompt hint for the model."""
    return (
        "RELEVANT LEGAL CONTEXT (use it if accurate, but verify against your own knowledge):\n"
        f"{topic.response}\n\n"
        f"Existing citations in context: {', '.join(topic.citations)}"
    )
