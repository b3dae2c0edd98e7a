from decimal import Decimal

from encore.schemas.records import Instrument, Rental, RentalStatus


SAMPLE_INSTRUMENTS = [
    Instrument(
        id="1",
        host_id="h1",
        name="Fender Stratocaster",
        category="Guitar",
        description="American Professional II in sunburst. Rosewood fretboard, perfect condition.",
        price_per_day=Decimal("18"),
        image_emoji="🎸",
        location="San José",
        is_available=True,
        rating=4.9,
        review_count=47,
    ),
    Instrument(
        id="2",
        host_id="h2",
        name="Yamaha P-125 Piano",
        category="Piano",
        description="88-key weighted digital piano. Includes sustain pedal and stand.",
        price_per_day=Decimal("25"),
        image_emoji="🎹",
        location="Heredia",
        is_available=True,
        rating=4.8,
        review_count=31,
    ),
    Instrument(
        id="3",
        host_id="h3",
        name="Pearl Export Drum Kit",
        category="Drums",
        description="Full 5-piece kit with cymbals, hardware and throne.",
        price_per_day=Decimal("35"),
        image_emoji="🥁",
        location="Alajuela",
        is_available=True,
        rating=4.7,
        review_count=22,
    ),
    Instrument(
        id="4",
        host_id="h4",
        name="Yamaha Alto Saxophone",
        category="Brass",
        description="YAS-280. Comes with mouthpiece, ligature and hard case.",
        price_per_day=Decimal("22"),
        image_emoji="🎷",
        location="San José",
        is_available=True,
        rating=4.8,
        review_count=29,
    ),
    Instrument(
        id="5",
        host_id="h5",
        name="Stentor Violin 4/4",
        category="Strings",
        description="Full-size violin with bow, rosin and case.",
        price_per_day=Decimal("14"),
        image_emoji="🎻",
        location="Cartago",
        is_available=True,
        rating=4.9,
        review_count=56,
    ),
    Instrument(
        id="6",
        host_id="h6",
        name="Roland TD-17 E-Drums",
        category="Drums",
        description="Professional V-Drums. Mesh heads, Bluetooth, totally silent.",
        price_per_day=Decimal("42"),
        image_emoji="🥁",
        location="San José",
        is_available=False,
        rating=4.9,
        review_count=14,
    ),
]

SAMPLE_RENTALS = [
    Rental(
        id="r1",
        instrument_id="1",
        renter_id="me",
        host_id="h1",
        start_date="2025-06-10",
        end_date="2025-06-14",
        total_price=Decimal("72"),
        status=RentalStatus.ACTIVE,
        instrument_name="Fender Stratocaster",
        instrument_emoji="🎸",
    ),
    Rental(
        id="r2",
        instrument_id="2",
        renter_id="me",
        host_id="h2",
        start_date="2025-05-01",
        end_date="2025-05-03",
        total_price=Decimal("50"),
        status=RentalStatus.COMPLETED,
        instrument_name="Yamaha P-125",
        instrument_emoji="🎹",
    ),
]

SAMPLE_HOST_REQUESTS = [
    Rental(
        id="r3",
        instrument_id="1",
        renter_id="u3",
        host_id="me",
        start_date="2025-06-20",
        end_date="2025-06-25",
        total_price=Decimal("90"),
        status=RentalStatus.PENDING,
        instrument_name="Fender Stratocaster",
        instrument_emoji="🎸",
    ),
    Rental(
        id="r4",
        instrument_id="3",
        renter_id="u4",
        host_id="me",
        start_date="2025-07-01",
        end_date="2025-07-03",
        total_price=Decimal("70"),
        status=RentalStatus.PENDING,
        instrument_name="Pearl Drum Kit",
        instrument_emoji="🥁",
    ),
]
