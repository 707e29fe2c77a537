"""
Preset library: placeholder content, curated photo catalogues and UI option lists.

Simulation mode answers every step from these tables; real mode uses the
mannequin catalogue (MANNEQUIN_SOURCE=catalog) and the model database as the
try-on fallback when every generator fails.
"""

import random
import logging

from .pipeline.models import CLOTHING_TYPES, PRODUCT_TYPES

logger = logging.getLogger(__name__)

PLACEHOLDER_VIDEO_URL = "https://storage.googleapis.com/gtv-videos-bucket/sample/ForBiggerBlazes.mp4"
PLACEHOLDER_PRODUCT_IMAGE = "https://via.placeholder.com/600x600?text=Product"

# ── Simulation placeholders (per product type) ───────────────────────────────

PLACEHOLDER_IMAGES = {
    "t-shirt": "https://images.unsplash.com/photo-1521572163474-6864f9cf17ab?w=600&h=600&fit=crop",
    "hoodie": "https://images.unsplash.com/photo-1556821840-3a63f95609a7?w=600&h=600&fit=crop",
    "tote bag": "https://images.unsplash.com/photo-1622560480654-d96214fdc887?w=600&h=600&fit=crop",
    "mug": "https://images.unsplash.com/photo-1577937217765-4ad6898c539d?w=600&h=600&fit=crop",
    "phone case": "https://images.unsplash.com/photo-1606041008023-472dfb5e530f?w=600&h=600&fit=crop",
    "poster": "https://images.unsplash.com/photo-1588345921523-c2dcdb7f1dcd?w=600&h=600&fit=crop",
}

PLACEHOLDER_SCRIPTS = {
    "t-shirt": {
        "headline": "Style Meets Comfort",
        "bullets": [
            "Premium soft cotton fabric",
            "Versatile design for any outfit",
            "Durable & long-lasting quality",
        ],
        "cta": "Shop Now",
        "color_palette": ["#3B82F6", "#1E40AF", "#DBEAFE"],
    },
    "hoodie": {
        "headline": "Cozy Redefined",
        "bullets": [
            "Ultra-soft inner lining",
            "Perfect for all seasons",
            "Spacious pockets & adjustable hood",
        ],
        "cta": "Stay Cozy",
        "color_palette": ["#6366F1", "#4338CA", "#E0E7FF"],
    },
    "tote bag": {
        "headline": "Carry With Confidence",
        "bullets": [
            "Sturdy construction for heavy loads",
            "Eco-friendly sustainable materials",
            "Stylish design for any occasion",
        ],
        "cta": "Carry Better",
        "color_palette": ["#10B981", "#065F46", "#D1FAE5"],
    },
    "mug": {
        "headline": "Elevate Your Morning Ritual",
        "bullets": [
            "Temperature-retention technology",
            "Comfortable ergonomic handle",
            "Dishwasher & microwave safe",
        ],
        "cta": "Elevate Your Day",
        "color_palette": ["#F59E0B", "#B45309", "#FEF3C7"],
    },
    "phone case": {
        "headline": "Protection With Style",
        "bullets": [
            "Military-grade drop protection",
            "Slim profile fits perfectly in hand",
            "Premium materials that won't yellow",
        ],
        "cta": "Protect In Style",
        "color_palette": ["#8B5CF6", "#6D28D9", "#EDE9FE"],
    },
    "poster": {
        "headline": "Make A Statement",
        "bullets": [
            "Museum-quality archival paper",
            "Vibrant colors that won't fade",
            "Makes a perfect statement piece",
        ],
        "cta": "Decorate Now",
        "color_palette": ["#EC4899", "#BE185D", "#FCE7F3"],
    },
}

DEFAULT_BULLETS = [
    "High-quality craftsmanship",
    "Designed to impress",
    "Perfect for everyday use",
]
DEFAULT_CTA = "Get Yours Today"
DEFAULT_PALETTE = ["#3B82F6", "#1E40AF", "#DBEAFE"]


def get_placeholder_image(product_type: str) -> str:
    return PLACEHOLDER_IMAGES.get(product_type, PLACEHOLDER_PRODUCT_IMAGE)


def get_placeholder_video(product_type: str) -> str:
    # Every product type shares the sample clip
    return PLACEHOLDER_VIDEO_URL


def get_placeholder_script(product_name: str, product_type: str) -> dict:
    """Canned marketing copy; unknown product types get a generic script."""
    preset = PLACEHOLDER_SCRIPTS.get(product_type)
    if preset:
        return {**preset, "bullets": list(preset["bullets"]), "color_palette": list(preset["color_palette"])}
    return {
        "headline": f"Premium {product_name}",
        "bullets": list(DEFAULT_BULLETS),
        "cta": DEFAULT_CTA,
        "color_palette": list(DEFAULT_PALETTE),
    }


# ── Curated mannequin catalogue (budget alternative to DALL-E) ───────────────

MANNEQUIN_PHOTOS = {
    "t-shirt": [
        {"id": "tshirt-male-1", "gender": "male", "pose": "front-facing",
         "url": "https://images.unsplash.com/photo-1618886614638-80e3c103d2dc?w=800&h=1200&fit=crop",
         "description": "Male mannequin torso, front view"},
        {"id": "tshirt-female-1", "gender": "female", "pose": "front-facing",
         "url": "https://images.unsplash.com/photo-1554568218-0f1715e72254?w=800&h=1200&fit=crop",
         "description": "Female mannequin torso, front view"},
        {"id": "tshirt-neutral-1", "gender": "neutral", "pose": "front-facing",
         "url": "https://images.unsplash.com/photo-1583743814966-8936f5b7be1a?w=800&h=1200&fit=crop",
         "description": "Gender-neutral mannequin torso, front view"},
    ],
    "hoodie": [
        {"id": "hoodie-male-1", "gender": "male", "pose": "front-facing",
         "url": "https://images.unsplash.com/photo-1556821840-3a63f95609a7?w=800&h=1200&fit=crop",
         "description": "Male mannequin in hoodie pose"},
        {"id": "hoodie-female-1", "gender": "female", "pose": "front-facing",
         "url": "https://images.unsplash.com/photo-1515886657613-9f3515b0c78f?w=800&h=1200&fit=crop",
         "description": "Female mannequin in hoodie pose"},
    ],
    "tote bag": [
        {"id": "bag-display-1", "gender": "neutral", "pose": "hanging",
         "url": "https://images.unsplash.com/photo-1566150905458-1bf1fc113f0d?w=800&h=1200&fit=crop",
         "description": "Tote bag display stand"},
        {"id": "bag-model-1", "gender": "neutral", "pose": "shoulder-carry",
         "url": "https://images.unsplash.com/photo-1622560480605-d83c853bc5c3?w=800&h=1200&fit=crop",
         "description": "Model carrying tote bag over shoulder"},
    ],
    "mug": [
        {"id": "mug-table-1", "gender": "neutral", "pose": "table-display",
         "url": "https://images.unsplash.com/photo-1514228742587-6b1558fcca3d?w=800&h=1200&fit=crop",
         "description": "Coffee mug on clean table setup"},
        {"id": "mug-hands-1", "gender": "neutral", "pose": "hands-holding",
         "url": "https://images.unsplash.com/photo-1571079977981-6e155c5559ca?w=800&h=1200&fit=crop",
         "description": "Hands holding coffee mug"},
    ],
    "phone case": [
        {"id": "phone-display-1", "gender": "neutral", "pose": "stand-display",
         "url": "https://images.unsplash.com/photo-1606041008023-472dfb5e530f?w=800&h=1200&fit=crop",
         "description": "Phone case on display stand"},
        {"id": "phone-hands-1", "gender": "neutral", "pose": "hands-holding",
         "url": "https://images.unsplash.com/photo-1592899677977-9c10ca588bbd?w=800&h=1200&fit=crop",
         "description": "Hands holding phone with case"},
    ],
    "poster": [
        {"id": "poster-wall-1", "gender": "neutral", "pose": "wall-mounted",
         "url": "https://images.unsplash.com/photo-1588345921523-c2dcdb7f1dcd?w=800&h=1200&fit=crop",
         "description": "Poster frame on white wall"},
        {"id": "poster-easel-1", "gender": "neutral", "pose": "easel-display",
         "url": "https://images.unsplash.com/photo-1569163139394-de4798aa9d7b?w=800&h=1200&fit=crop",
         "description": "Poster on display easel"},
    ],
}

FALLBACK_MANNEQUIN_PHOTOS = [
    {"id": "generic-display-1", "gender": "neutral", "pose": "table-display",
     "url": "https://images.unsplash.com/photo-1558618666-fcd25c85cd64?w=800&h=1200&fit=crop",
     "description": "Generic product display setup"},
    {"id": "generic-mannequin-1", "gender": "neutral", "pose": "front-facing",
     "url": "https://images.unsplash.com/photo-1531746020798-e6953c6e8e04?w=800&h=1200&fit=crop",
     "description": "Generic mannequin for any product"},
]


def list_mannequin_photos(product_type: str) -> list[dict]:
    return MANNEQUIN_PHOTOS.get(product_type.lower().strip(), FALLBACK_MANNEQUIN_PHOTOS)


def get_mannequin_photo(product_type: str, gender: str = "neutral") -> dict:
    """
    Pick a catalogue photo: exact gender, then neutral, then the first one
    for the product type, then the generic fallback.
    """
    photos = list_mannequin_photos(product_type)
    selected = (
        next((p for p in photos if p["gender"] == gender), None)
        or next((p for p in photos if p["gender"] == "neutral"), None)
        or (photos[0] if photos else FALLBACK_MANNEQUIN_PHOTOS[0])
    )
    logger.info(f"Selected mannequin photo: {selected['id']} - {selected['description']}")
    return selected


def get_random_mannequin_photo(product_type: str, gender: str = "neutral") -> dict:
    photos = list_mannequin_photos(product_type)
    matching = [p for p in photos if p["gender"] in (gender, "neutral")]
    return random.choice(matching or photos)


# ── Try-on model database ────────────────────────────────────────────────────

DEFAULT_MODEL_PHOTO = "https://images.unsplash.com/photo-1494790108377-be9c29b29330?w=1200&h=1600&fit=crop"


def _u(photo_id: str) -> str:
    return f"https://images.unsplash.com/photo-{photo_id}?w=1200&h=1600&fit=crop"


# gender → ethnicity → body type → pose → photos
MODEL_DATABASE = {
    "female": {
        "caucasian": {
            "slim": {
                "front": [_u("1487412720507-e7ab37603c6f"), _u("1524504388940-b1c1722653e1"), _u("1488716820095-cbe80883c496")],
                "side": [_u("1515886657613-9f3515b0c78f"), _u("1521146764736-56c929d59c83")],
                "angle": [_u("1529626455594-4ff0802cfb7e"), _u("1502823403499-6ccfcf4fb453")],
            },
            "average": {
                "front": [_u("1494790108377-be9c29b29330"), _u("1438761681033-6461ffad8d80"), _u("1544717297-fa95b6ee9643")],
                "side": [_u("1499996860823-5214fcc65f8f"), _u("1517841905240-472988babdf9")],
                "angle": [_u("1489424731084-a5d8b219a5bb"), _u("1506863530036-1efeddceb993")],
            },
            "curvy": {
                "front": [_u("1580489944761-15a19d654956"), _u("1551698618-1dfe5d97d256")],
                "side": [_u("1596815064285-45ed8a9c0463")],
                "angle": [_u("1573496359142-b8d87734a5a2")],
            },
        },
        "african": {
            "slim": {
                "front": [_u("1531123897727-8f129e1688ce"), _u("1566492031773-4f4e44671d66")],
                "side": [_u("1588516903720-8ceb67f9ef84")],
                "angle": [_u("1594824020047-3c480ad2a2ab")],
            },
            "average": {
                "front": [_u("1589156280159-27698a70f29e"), _u("1557804506-669a67965ba0")],
                "side": [_u("1598300042247-d088f8ab3a91")],
                "angle": [_u("1582750433449-648ed127bb54")],
            },
            "curvy": {
                "front": [_u("1616847535022-df3b2e76c4c0")],
                "side": [_u("1604608672516-5ba60de8b391")],
            },
        },
        "asian": {
            "slim": {
                "front": [_u("1544005313-94ddf0286df2"), _u("1596913317062-82eb71e44878")],
                "side": [_u("1609595361082-4bbe4d6c5e3c")],
                "angle": [_u("1611689342806-0863700ce1e4")],
            },
            "average": {
                "front": [_u("1534528741775-53994a69daeb"), _u("1603569283847-aa295f0d016a")],
                "side": [_u("1614644147798-f8c0fc9da7f6")],
                "angle": [_u("1606122017369-d782bbb78f32")],
            },
        },
        "hispanic": {
            "slim": {
                "front": [_u("1592124549776-a7f0cc973b24")],
                "side": [_u("1616001618970-2bbbde2f3b13")],
            },
            "average": {
                "front": [_u("1618835962148-cf177563c6c0"), _u("1581403341630-a6e0b9d2d257")],
                "side": [_u("1592334873219-42ca023e48ce")],
            },
        },
    },
    "male": {
        "caucasian": {
            "slim": {
                "front": [_u("1500648767791-00dcc994a43e"), _u("1552058544-f2b08422138a")],
                "side": [_u("1553267751-1c148a7280a1")],
                "angle": [_u("1567336273898-ebbf9eb3c3bf")],
            },
            "athletic": {
                "front": [_u("1519085360753-af0119f7cbe7"), _u("1571019613454-1cb2f99b2d8b")],
                "side": [_u("1551698618-1dfe5d97d256")],
                "angle": [_u("1560250097-0b93528c311a")],
            },
            "average": {
                "front": [_u("1472099645785-5658abf4ff4e"), _u("1568602471122-7832951cc4c5")],
                "side": [_u("1583394838336-acd977736f90")],
            },
        },
        "african": {
            "athletic": {
                "front": [_u("1506794778202-cad84cf45f1d"), _u("1594824020047-3c480ad2a2ab")],
                "side": [_u("1598300042247-d088f8ab3a91")],
                "angle": [_u("1566492031773-4f4e44671d66")],
            },
            "slim": {
                "front": [_u("1592334873219-42ca023e48ce")],
                "side": [_u("1588516903720-8ceb67f9ef84")],
            },
        },
        "asian": {
            "slim": {
                "front": [_u("1609595361082-4bbe4d6c5e3c")],
                "side": [_u("1614644147798-f8c0fc9da7f6")],
            },
            "average": {
                "front": [_u("1603569283847-aa295f0d016a"), _u("1611689342806-0863700ce1e4")],
                "angle": [_u("1606122017369-d782bbb78f32")],
            },
        },
        "hispanic": {
            "athletic": {
                "front": [_u("1581403341630-a6e0b9d2d257")],
                "side": [_u("1616001618970-2bbbde2f3b13")],
            },
            "average": {
                "front": [_u("1618835962148-cf177563c6c0")],
            },
        },
    },
}

# Camera angle → pose bucket in MODEL_DATABASE
CAMERA_POSE_MAP = {
    "front": "front",
    "side": "side",
    "45-degree": "angle",
    "back": "side",
    "angle": "angle",
}


def _first_value(mapping: dict):
    return next(iter(mapping.values()), {})


def select_model_photo(gender: str, ethnicity: str, body_type: str, camera_angle: str = "front") -> str:
    """
    Walk the model database with fallbacks at every level and pick a random
    photo for the requested pose.
    """
    target_pose = CAMERA_POSE_MAP.get(camera_angle, "front")

    gender_db = MODEL_DATABASE.get(gender) or MODEL_DATABASE["female"]
    ethnicity_db = gender_db.get(ethnicity) or gender_db.get("caucasian") or _first_value(gender_db)
    body_db = (
        ethnicity_db.get(body_type)
        or ethnicity_db.get("average")
        or ethnicity_db.get("slim")
        or _first_value(ethnicity_db)
    )

    photos = body_db.get(target_pose)
    if not photos:
        for pose in ("front", "angle", "side"):
            if body_db.get(pose):
                photos = body_db[pose]
                break

    if photos:
        logger.info(f"Selected {gender} {ethnicity} {body_type} model in {target_pose} pose")
        return random.choice(photos)

    return DEFAULT_MODEL_PHOTO


# ── UI option lists ──────────────────────────────────────────────────────────

MODEL_PRESETS = {
    "ethnicities": [
        {"value": "caucasian", "label": "Caucasian"},
        {"value": "african", "label": "African"},
        {"value": "asian", "label": "Asian"},
        {"value": "hispanic", "label": "Hispanic"},
        {"value": "middle-eastern", "label": "Middle Eastern"},
        {"value": "mixed", "label": "Mixed"},
    ],
    "body_types": [
        {"value": "slim", "label": "Slim"},
        {"value": "athletic", "label": "Athletic"},
        {"value": "average", "label": "Average"},
        {"value": "curvy", "label": "Curvy"},
        {"value": "plus-size", "label": "Plus Size"},
    ],
    "ages": [
        {"value": "young", "label": "18-25"},
        {"value": "middle-aged", "label": "26-40"},
        {"value": "mature", "label": "40+"},
    ],
    "poses": [
        {"value": "standing", "label": "Standing"},
        {"value": "walking", "label": "Walking"},
        {"value": "sitting", "label": "Sitting"},
        {"value": "dynamic", "label": "Dynamic"},
    ],
}

DEFAULT_BACKGROUND_URL = "https://images.unsplash.com/photo-1565766736122-de5ccdb3b3bb?w=1200"

BACKGROUND_PRESETS = [
    {"id": "studio-white", "name": "White Studio", "type": "studio", "url": "https://images.unsplash.com/photo-1565766736122-de5ccdb3b3bb?w=1200"},
    {"id": "studio-gray", "name": "Gray Studio", "type": "studio", "url": "https://images.unsplash.com/photo-1599643477877-530eb83abc8e?w=1200"},
    {"id": "outdoor-park", "name": "City Park", "type": "outdoor", "url": "https://images.unsplash.com/photo-1519331379826-f10be5486c6f?w=1200"},
    {"id": "outdoor-beach", "name": "Beach", "type": "outdoor", "url": "https://images.unsplash.com/photo-1507525428034-b723cf961d3e?w=1200"},
    {"id": "urban-street", "name": "Urban Street", "type": "urban", "url": "https://images.unsplash.com/photo-1449824913935-59a10b8d2000?w=1200"},
    {"id": "lifestyle-cafe", "name": "Coffee Shop", "type": "lifestyle", "url": "https://images.unsplash.com/photo-1445116572660-236099ec97a0?w=1200"},
]

DEMO_ITEMS = [
    {
        "id": "demo-tshirt-1",
        "name": "Classic White T-Shirt",
        "type": "tshirt",
        "image_url": "https://images.unsplash.com/photo-1521572163474-6864f9cf17ab?w=800",
        "thumbnail_url": "https://images.unsplash.com/photo-1521572163474-6864f9cf17ab?w=200",
    },
    {
        "id": "demo-dress-1",
        "name": "Summer Floral Dress",
        "type": "dress",
        "image_url": "https://images.unsplash.com/photo-1595777457583-95e059d581b8?w=800",
        "thumbnail_url": "https://images.unsplash.com/photo-1595777457583-95e059d581b8?w=200",
    },
    {
        "id": "demo-hoodie-1",
        "name": "Casual Hoodie",
        "type": "hoodie",
        "image_url": "https://images.unsplash.com/photo-1556821840-3a63f95609a7?w=800",
        "thumbnail_url": "https://images.unsplash.com/photo-1556821840-3a63f95609a7?w=200",
    },
]


def resolve_background_url(custom_url: str | None = None, preset: str | None = None) -> str:
    """Custom URL wins, then a known preset id, then the white studio."""
    if custom_url:
        return custom_url
    if preset:
        for entry in BACKGROUND_PRESETS:
            if entry["id"] == preset:
                return entry["url"]
    return DEFAULT_BACKGROUND_URL


def list_presets() -> dict:
    """Everything a client needs to build its option pickers."""
    return {
        "product_types": PRODUCT_TYPES,
        "clothing_types": CLOTHING_TYPES,
        "model_presets": MODEL_PRESETS,
        "background_presets": BACKGROUND_PRESETS,
        "demo_items": DEMO_ITEMS,
    }
