"""Style catalog endpoint."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/styles")
async def list_styles(request: Request):
    """Catalog in display order, for the style picker."""
    catalog = request.app.state.catalog
    return {
        "styles": [
            {
                "id": style.id,
                "displayName": style.display_name,
                "prompt": style.prompt_text,
                "category": style.category.value,
            }
            for style in catalog
        ]
    }
