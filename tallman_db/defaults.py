"""
The store's canonical schema and first-start knowledge.

Schema history:

    v1  knowledge      keyed by timestamp (integer), index on content
        chatHistory    keyed by id (text)
    v3  approvedUsers  keyed by username (text), seeded with the
                       bootstrap admin

Version 2 carried no schema change. Later versions may only add
collections, indexes or seeds; nothing is ever dropped or renamed.
"""

from __future__ import annotations

from typing import List

from .config import DEFAULT_BOOTSTRAP_ADMIN
from .db.schema import KeyRule, SchemaRegistry
from .repositories.models import KnowledgeItem, UserRole
from .repositories.chat_repository import CHAT_HISTORY
from .repositories.knowledge_repository import KNOWLEDGE
from .repositories.user_repository import APPROVED_USERS

SCHEMA_VERSION = 3


def build_schema(bootstrap_admin: str = DEFAULT_BOOTSTRAP_ADMIN) -> SchemaRegistry:
    reg = SchemaRegistry()

    reg.declare(KNOWLEDGE, KeyRule("timestamp", key_type="integer"), since_version=1)
    reg.create_index(KNOWLEDGE, "content", since_version=1)
    reg.declare(CHAT_HISTORY, KeyRule("id"), since_version=1)

    reg.declare(APPROVED_USERS, KeyRule("username"), since_version=3)
    reg.seed(
        APPROVED_USERS,
        [{"username": bootstrap_admin, "role": UserRole.ADMIN.value}],
        since_version=3,
    )
    return reg


# ----------------------------------------------------------------------
# Default knowledge base (company fact sheet)
# ----------------------------------------------------------------------

DEFAULT_KNOWLEDGE_BASE: List[KnowledgeItem] = [
    # Company overview
    KnowledgeItem(content="Tallman Equipment Company, Inc., founded in 1974, is a leading manufacturer's representative and distributor of tools and equipment for the power utility and telecommunications industries.", timestamp=1672531200000),
    KnowledgeItem(content="Our headquarters is located at 15430 Endeavor Dr, Noblesville, IN 46060, proudly serving Indiana, Ohio, and Kentucky.", timestamp=1672531201000),
    KnowledgeItem(content="We serve a diverse client base, including investor-owned utilities (IOUs), municipal electric systems, electrical cooperatives (co-ops), and contractors.", timestamp=1672531202000),
    KnowledgeItem(content="Tallman Equipment's mission is to provide lineworkers with the safest, most reliable tools and equipment, backed by exceptional customer service and technical expertise.", timestamp=1672531203000),

    # Product categories
    KnowledgeItem(content="Our core product offerings include a comprehensive range of lineman tools, such as hot line tools, climbing equipment, personal protective equipment (PPE), and safety gear.", timestamp=1675209600000),
    KnowledgeItem(content="We are a premier distributor for grounding equipment, offering standard and custom-made grounding assemblies, clamps, and accessories to ensure worker safety during maintenance.", timestamp=1675209601000),
    KnowledgeItem(content="Tallman provides a wide selection of hoisting and rigging equipment, including chain hoists, lever hoists, web strap hoists, and rope blocks designed for utility work.", timestamp=1675209602000),
    KnowledgeItem(content="Our inventory includes advanced testing and measurement instruments for diagnosing and maintaining electrical systems, from voltage detectors to insulation testers.", timestamp=1675209603000),
    KnowledgeItem(content="We supply essential utility work accessories like cover-up equipment (line hose, insulator covers), temporary jumpers, and various hand tools from trusted brands.", timestamp=1675209604000),

    # Brands and manufacturers
    KnowledgeItem(content="Tallman Equipment is a proud partner and distributor for industry-leading manufacturers, including Hastings, Chance (Hubbell Power Systems), Klein Tools, Bashlin Industries, and Salisbury by Honeywell.", timestamp=1677628800000),
    KnowledgeItem(content="Through our partnership with Hastings, we offer a full line of fiberglass hot sticks, telescopic sticks, and other live-line tools known for their durability and safety.", timestamp=1677628801000),
    KnowledgeItem(content="As a Chance distributor, we provide access to top-tier anchoring systems, insulators, and cutout switches essential for power line construction and maintenance.", timestamp=1677628802000),

    # Services
    KnowledgeItem(content="Tallman Equipment operates a certified tool repair and testing facility. We specialize in servicing hydraulic tools, hoists, and grounding equipment to ensure they meet safety standards.", timestamp=1680307200000),
    KnowledgeItem(content="Our services include comprehensive testing for hot line tools and rubber goods (gloves, sleeves, blankets) in our state-of-the-art NAIL-accredited lab, ensuring compliance with ASTM and OSHA standards.", timestamp=1680307201000),
    KnowledgeItem(content="We offer on-site product demonstrations and safety training sessions to help crews understand the proper use and maintenance of the equipment we sell.", timestamp=1680307202000),
    KnowledgeItem(content="Our knowledgeable sales team provides expert technical support and can assist in creating custom solutions, such as specialized grounding sets or tool kits for specific jobs.", timestamp=1680307203000),

    # Sales and contact
    KnowledgeItem(content="For sales inquiries, product quotes, or service requests, customers can contact our main office or reach out to their dedicated regional sales representative through our official website.", timestamp=1682899200000),
    KnowledgeItem(content="We maintain a large inventory of common tools and equipment at our Noblesville warehouse to ensure quick delivery times for our customers.", timestamp=1682899201000),
]


__all__ = [
    "SCHEMA_VERSION",
    "build_schema",
    "DEFAULT_KNOWLEDGE_BASE",
]
