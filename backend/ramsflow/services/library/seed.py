"""
Default construction-safety library, loaded once per tenant.

seed_defaults() is idempotent: each library is only populated when the
tenant has no rows in it yet (soft-deleted rows count).
"""

from __future__ import annotations

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ramsflow.db.models.library import (
    ControlHierarchy,
    ControlMeasureLibrary,
    HazardCategory,
    HazardLibrary,
    LegislationReference,
    SopReference,
)

_log = structlog.get_logger(__name__)

_HAZARDS = [
    (
        "HAZ-001",
        "Fall from Height",
        "Risk of falling from elevated work areas including scaffolding, ladders, roofs, or open edges",
        HazardCategory.WORKING_AT_HEIGHT,
        "fall,height,scaffold,ladder,roof,edge,elevated,platform,tower",
        3,
        5,
    ),
    (
        "HAZ-002",
        "Falling Objects",
        "Tools, materials or debris falling from height onto people below",
        HazardCategory.WORKING_AT_HEIGHT,
        "falling,objects,tools,materials,debris,dropped,overhead",
        3,
        4,
    ),
    (
        "HAZ-010",
        "Manual Handling Injury",
        "Musculoskeletal injury from lifting, carrying, pushing or pulling loads",
        HazardCategory.MANUAL_HANDLING,
        "lifting,carrying,pushing,pulling,heavy,load,back,strain,sprain",
        4,
        3,
    ),
    (
        "HAZ-020",
        "Electric Shock",
        "Contact with live electrical conductors or faulty equipment",
        HazardCategory.ELECTRICAL,
        "electric,shock,live,wire,cable,voltage,electrocution",
        2,
        5,
    ),
    (
        "HAZ-021",
        "Underground Services",
        "Striking buried cables or pipes during excavation",
        HazardCategory.ELECTRICAL,
        "underground,services,cables,pipes,excavation,digging,buried",
        3,
        5,
    ),
    (
        "HAZ-032",
        "Plant/Vehicle Strike",
        "Being struck by reversing or moving plant and vehicles",
        HazardCategory.MACHINERY_EQUIPMENT,
        "vehicle,plant,strike,reversing,forklift,excavator,truck",
        3,
        5,
    ),
    (
        "HAZ-040",
        "Slips, Trips, and Falls",
        "Slipping or tripping on wet floors, obstacles, trailing cables or uneven ground",
        HazardCategory.PHYSICAL,
        "slip,trip,fall,wet,floor,obstacle,cable,uneven",
        4,
        2,
    ),
    (
        "HAZ-041",
        "Noise Exposure",
        "Hearing damage from prolonged exposure to loud tools and plant",
        HazardCategory.PHYSICAL,
        "noise,hearing,decibel,loud,ear,damage",
        4,
        3,
    ),
    (
        "HAZ-050",
        "Fire from Hot Works",
        "Ignition of combustibles by welding, cutting or grinding sparks",
        HazardCategory.FIRE,
        "fire,hot,work,welding,cutting,sparks,ignition",
        3,
        4,
    ),
    (
        "HAZ-060",
        "Hazardous Substances",
        "Exposure to toxic or corrosive chemicals used on site",
        HazardCategory.CHEMICAL,
        "chemical,hazardous,COSHH,substance,toxic,corrosive",
        3,
        4,
    ),
    (
        "HAZ-061",
        "Silica Dust Exposure",
        "Inhalation of respirable crystalline silica when cutting, drilling or grinding concrete and stone",
        HazardCategory.CHEMICAL,
        "silica,dust,RCS,cutting,drilling,grinding,concrete,stone",
        4,
        4,
    ),
]

_CONTROLS = [
    (
        "CTL-001",
        "Edge Protection",
        "Install guardrails, toe boards, and intermediate rails at open edges. "
        "Guardrails minimum 950mm high with 470mm gap max between rails.",
        ControlHierarchy.ENGINEERING,
        HazardCategory.WORKING_AT_HEIGHT,
        "guardrail,edge,protection,barrier,toeboard,handrail",
        2,
        0,
    ),
    (
        "CTL-002",
        "Scaffold with Full Boarding",
        "Use fully boarded scaffold platforms with double guardrails, toe boards, and safe access. "
        "Scaffold to be erected and inspected by competent person.",
        ControlHierarchy.ENGINEERING,
        HazardCategory.WORKING_AT_HEIGHT,
        "scaffold,platform,boarding,tower,access",
        2,
        0,
    ),
    (
        "CTL-004",
        "Safety Netting",
        "Install safety nets below work area to arrest falls. "
        "Nets to comply with EN 1263-1 and be installed by competent rigger.",
        ControlHierarchy.ENGINEERING,
        HazardCategory.WORKING_AT_HEIGHT,
        "net,safety,fall,arrest,catch",
        0,
        2,
    ),
    (
        "CTL-010",
        "Work at Ground Level",
        "Where possible, prefabricate components at ground level to eliminate the need for work at height.",
        ControlHierarchy.ELIMINATION,
        HazardCategory.WORKING_AT_HEIGHT,
        "ground,level,eliminate,prefabricate,assembly",
        3,
        0,
    ),
    (
        "CTL-020",
        "Mechanical Lifting Equipment",
        "Use forklift, crane, pallet truck, or hoist to eliminate manual handling where possible.",
        ControlHierarchy.ENGINEERING,
        HazardCategory.MANUAL_HANDLING,
        "forklift,crane,hoist,pallet,mechanical,lifting",
        2,
        0,
    ),
    (
        "CTL-021",
        "Manual Handling Training",
        "All personnel to receive manual handling training covering correct lifting techniques, "
        "assessing loads, and when to seek assistance.",
        ControlHierarchy.ADMINISTRATIVE,
        HazardCategory.MANUAL_HANDLING,
        "training,manual,handling,lifting,technique",
        1,
        0,
    ),
    (
        "CTL-030",
        "Isolation and Lockout/Tagout",
        "Isolate electrical supply and apply lockout/tagout before any electrical work. "
        "Verify dead using approved voltage indicator.",
        ControlHierarchy.ENGINEERING,
        HazardCategory.ELECTRICAL,
        "isolation,lockout,tagout,LOTO,dead,verify",
        2,
        0,
    ),
    (
        "CTL-032",
        "CAT and Genny Survey",
        "Use Cable Avoidance Tool (CAT) and signal generator before excavation. "
        "Mark up located services. Hand dig within 500mm of services.",
        ControlHierarchy.ENGINEERING,
        HazardCategory.ELECTRICAL,
        "CAT,genny,survey,underground,services,scan",
        2,
        0,
    ),
    (
        "CTL-041",
        "Vehicle/Pedestrian Segregation",
        "Implement physical barriers, designated walkways, and separate access routes "
        "to keep pedestrians away from moving vehicles and plant.",
        ControlHierarchy.ENGINEERING,
        HazardCategory.MACHINERY_EQUIPMENT,
        "segregation,pedestrian,vehicle,barrier,walkway",
        2,
        0,
    ),
    (
        "CTL-050",
        "Good Housekeeping",
        "Maintain clean and tidy work areas. Clear walkways of obstacles, manage cables "
        "with covers or overhead routes, clean spills immediately.",
        ControlHierarchy.ADMINISTRATIVE,
        HazardCategory.PHYSICAL,
        "housekeeping,tidy,clean,clear,walkway,cable",
        2,
        0,
    ),
    (
        "CTL-051",
        "Hearing Protection",
        "Provide and wear appropriate hearing protection when noise levels exceed 85 dB(A) action level.",
        ControlHierarchy.PPE,
        HazardCategory.PHYSICAL,
        "hearing,protection,ear,defenders,plugs,noise",
        0,
        2,
    ),
    (
        "CTL-060",
        "Hot Work Permit",
        "Obtain hot work permit before welding, cutting, or grinding. "
        "Clear combustibles, post fire watch, have extinguisher available.",
        ControlHierarchy.ADMINISTRATIVE,
        HazardCategory.FIRE,
        "hot,work,permit,welding,fire,watch",
        2,
        0,
    ),
    (
        "CTL-071",
        "Dust Suppression/Extraction",
        "Use water suppression or on-tool extraction when cutting, drilling, or grinding "
        "to control silica and other dust.",
        ControlHierarchy.ENGINEERING,
        HazardCategory.CHEMICAL,
        "dust,suppression,extraction,water,silica,control",
        2,
        0,
    ),
    (
        "CTL-072",
        "Respiratory Protection (FFP3)",
        "Wear FFP3 mask or powered respirator when dust controls are insufficient. "
        "Face-fit test required for tight-fitting masks.",
        ControlHierarchy.PPE,
        HazardCategory.CHEMICAL,
        "respiratory,mask,FFP3,respirator,dust,breathing",
        0,
        2,
    ),
    (
        "CTL-090",
        "Safety Helmet",
        "Wear appropriate safety helmet (hard hat) at all times in construction areas.",
        ControlHierarchy.PPE,
        None,
        "helmet,hard,hat,head,protection",
        0,
        1,
    ),
]

_LEGISLATION = [
    (
        "SHWWA-2005",
        "Safety, Health and Welfare at Work Act 2005",
        "SHWWA 2005",
        "Primary Irish health and safety legislation setting out duties of employers, employees, and others.",
        "general,duties,employer,employee,safety,statement,risk,assessment",
        None,
    ),
    (
        "SHWW-CONST-2013",
        "Safety, Health and Welfare at Work (Construction) Regulations 2013",
        "Construction Regs 2013",
        "Irish regulations specific to construction work, covering duties of clients, designers, contractors and workers.",
        "construction,contractor,client,designer,safety,file,PSCS,PSDP",
        None,
    ),
    (
        "SHWW-GEN-2007",
        "Safety, Health and Welfare at Work (General Application) Regulations 2007",
        "General Application Regs",
        "Irish regulations covering work equipment, PPE, manual handling, electricity, work at height, and more.",
        "general,application,equipment,PPE,manual,handling,height,electricity",
        None,
    ),
    (
        "SHWW-CHEM-2001",
        "Safety, Health and Welfare at Work (Chemical Agents) Regulations 2001",
        "Chemical Agents Regs",
        "Irish regulations on controlling exposure to hazardous chemical agents in the workplace.",
        "chemical,COSHH,hazardous,substance,exposure,OEL",
        "Chemical",
    ),
]

_SOPS = [
    (
        "SOP-001",
        "Working at Height",
        "Standard operating procedure for all work at height activities including ladder use, "
        "scaffold access, and MEWP operation.",
        "height,ladder,scaffold,MEWP,roof,elevated,platform",
        "No work at height shall commence without a completed task-specific risk assessment. "
        "Edge protection must be in place before work begins.",
        "SHWW-GEN-2007",
    ),
    (
        "SOP-002",
        "Manual Handling",
        "Standard operating procedure for safe manual handling of loads on construction sites.",
        "lifting,carrying,pushing,pulling,manual,handling,load",
        "Mechanical aids shall be used wherever reasonably practicable. "
        "No single person lift over 25kg without assessment.",
        "SHWW-GEN-2007",
    ),
    (
        "SOP-003",
        "Electrical Safety",
        "Standard operating procedure for electrical work and working near electrical installations.",
        "electrical,electric,cable,wire,isolation,voltage",
        "All electrical work to be carried out by competent electricians. "
        "Isolation and lockout/tagout required for all work on electrical systems.",
        "SHWW-GEN-2007",
    ),
    (
        "SOP-004",
        "Excavation Safety",
        "Standard operating procedure for excavation work including trenching and service detection.",
        "excavation,trench,dig,underground,services,shoring",
        "No excavation shall begin until services have been located with a CAT and genny survey.",
        "SHWW-CONST-2013",
    ),
]


async def _is_empty(db: AsyncSession, model: type, tenant_id: str) -> bool:
    count = await db.scalar(
        select(func.count()).select_from(model).where(model.tenant_id == tenant_id)
    )
    return not count


async def seed_defaults(db: AsyncSession, tenant_id: str) -> int:
    """Populate empty libraries for *tenant_id*. Returns the number of rows added."""
    added = 0

    if await _is_empty(db, HazardLibrary, tenant_id):
        for order, (code, name, description, category, keywords, likelihood, severity) in enumerate(
            _HAZARDS, start=1
        ):
            db.add(
                HazardLibrary(
                    tenant_id=tenant_id,
                    code=code,
                    name=name,
                    description=description,
                    category=category,
                    keywords=keywords,
                    default_likelihood=likelihood,
                    default_severity=severity,
                    typical_who_at_risk="Employees, Contractors, Visitors",
                    sort_order=order,
                )
            )
            added += 1

    if await _is_empty(db, ControlMeasureLibrary, tenant_id):
        for order, (code, name, description, hierarchy, category, keywords, l_red, s_red) in enumerate(
            _CONTROLS, start=1
        ):
            db.add(
                ControlMeasureLibrary(
                    tenant_id=tenant_id,
                    code=code,
                    name=name,
                    description=description,
                    hierarchy=int(hierarchy),
                    applicable_to_category=category,
                    keywords=keywords,
                    typical_likelihood_reduction=l_red,
                    typical_severity_reduction=s_red,
                    sort_order=order,
                )
            )
            added += 1

    if await _is_empty(db, LegislationReference, tenant_id):
        for order, (code, name, short_name, description, keywords, categories) in enumerate(
            _LEGISLATION, start=1
        ):
            db.add(
                LegislationReference(
                    tenant_id=tenant_id,
                    code=code,
                    name=name,
                    short_name=short_name,
                    description=description,
                    jurisdiction="Ireland",
                    keywords=keywords,
                    applicable_categories=categories,
                    sort_order=order,
                )
            )
            added += 1

    if await _is_empty(db, SopReference, tenant_id):
        for order, (sop_id, topic, description, keywords, snippet, legislation) in enumerate(
            _SOPS, start=1
        ):
            db.add(
                SopReference(
                    tenant_id=tenant_id,
                    sop_id=sop_id,
                    topic=topic,
                    description=description,
                    task_keywords=keywords,
                    policy_snippet=snippet,
                    applicable_legislation=legislation,
                    sort_order=order,
                )
            )
            added += 1

    if added:
        await db.flush()
        _log.info("rams_library_seeded", tenant_id=tenant_id, rows=added)
    return added
