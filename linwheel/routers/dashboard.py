from datetime import datetime
from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from linwheel.db import crud, models, serializers
from linwheel.deps import get_db

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])

def _sort_key(item: Dict[str, Any], run_created: Dict[str, datetime]):
    # scheduled items first by time, then everything else newest run first
    scheduled = item["_scheduled_at"]
    if scheduled is not None:
        return (0, scheduled.timestamp())
    created = run_created.get(item.get("run_id") or "") or item["_created_at"]
    return (1, -(created.timestamp() if created else 0))

@router.get("/approved")
def approved_content(db: Session = Depends(get_db)):
    runs = {r.id: r for r in db.query(models.GenerationRun).all()}
    run_created = {rid: r.created_at for rid, r in runs.items()}
    items: List[Dict[str, Any]] = []

    for post in db.query(models.LinkedInPost).filter(models.LinkedInPost.approved.is_(True)):
        d = serializers.post_dict(post, crud.get_post_intent(db, post.id))
        d.update(content_type="post", _scheduled_at=post.scheduled_at, _created_at=post.created_at)
        items.append(d)
    for article in db.query(models.Article).filter(models.Article.approved.is_(True)):
        d = serializers.article_dict(article, crud.get_article_intent(db, article.id))
        d.update(content_type="article", _scheduled_at=article.scheduled_at, _created_at=article.created_at)
        items.append(d)

    items.sort(key=lambda i: _sort_key(i, run_created))
    for item in items:
        item.pop("_scheduled_at")
        item.pop("_created_at")
        run = runs.get(item.get("run_id") or "")
        item["source_label"] = run.source_label if run else "Manual draft"
    return {
        "items": items,
        "posts": [i for i in items if i["content_type"] == "post"],
        "articles": [i for i in items if i["content_type"] == "article"],
    }
