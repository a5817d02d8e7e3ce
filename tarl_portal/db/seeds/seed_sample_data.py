"""Seed a small organization tree for demo purposes."""

from sqlalchemy.orm import Session
from tarl_portal.models.organization import Zone, Province, District, School, SchoolClass

SAMPLE_TREE = {
    "Zone 1": {
        "Battambang": {
            "Battambang City": ["Wat Kor Primary", "Svay Por Primary"],
            "Sangkae": ["Ou Dambang Primary"],
        },
        "Pursat": {
            "Bakan": ["Bakan Primary"],
        },
    },
    "Zone 2": {
        "Kampong Cham": {
            "Batheay": ["Batheay Primary"],
        },
    },
}

GRADES = (4, 5)


def seed_sample_data(db: Session) -> None:
    """Insert zones, provinces, districts, schools and classes if the tree is empty."""
    if db.query(Zone).first():
        print("ℹ️  Organization tree already present, skipping.")
        return

    schools = 0
    for zone_name, provinces in SAMPLE_TREE.items():
        zone = Zone(name=zone_name)
        db.add(zone)
        db.flush()
        for province_name, districts in provinces.items():
            province = Province(name=province_name, zone_id=zone.id)
            db.add(province)
            db.flush()
            for district_name, school_names in districts.items():
                district = District(name=district_name, province_id=province.id)
                db.add(district)
                db.flush()
                for school_name in school_names:
                    school = School(
                        name=school_name,
                        district_id=district.id,
                        province_id=province.id,
                        zone_id=zone.id,
                    )
                    db.add(school)
                    db.flush()
                    for grade in GRADES:
                        db.add(SchoolClass(name=f"Grade {grade}", grade=grade, school_id=school.id))
                    schools += 1

    db.commit()
    print(f"✅ Seeded sample tree with {schools} schools")
