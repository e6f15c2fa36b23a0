import logging
from collections import Counter
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from envie2sortir.learning.keywords import (
    calculate_similarity,
    deduplicate_patterns,
    extract_keywords,
    SUGGESTION_THRESHOLD,
)
from envie2sortir.learning.models import EstablishmentLearningPattern

logger = logging.getLogger(__name__)


class LearningService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def save_pattern(
        self,
        name: str,
        detected_type: str,
        google_types: Optional[List[str]] = None,
        keywords: Optional[List[str]] = None,
        confidence: float = 0.0,
        commit: bool = True,
    ) -> EstablishmentLearningPattern:
        pattern = EstablishmentLearningPattern(
            name=name,
            detected_type=detected_type,
            google_types=list(google_types or []),
            keywords=list(keywords if keywords is not None else extract_keywords(name)),
            confidence=confidence,
            is_corrected=False,
        )
        self.db.add(pattern)
        if commit:
            await self.db.commit()
            await self.db.refresh(pattern)
        else:
            await self.db.flush()
        logger.info(f"🧠 Pattern enregistré : '{name}' -> {detected_type} ({confidence:.2f})")
        return pattern

    async def suggest_type(
        self,
        name: str,
        google_types: Optional[List[str]] = None,
        description: str = "",
    ) -> List[dict]:
        """Suggestions basées uniquement sur les motifs corrigés par un admin."""
        result = await self.db.execute(
            select(EstablishmentLearningPattern).where(EstablishmentLearningPattern.is_corrected.is_(True))
        )
        patterns = result.scalars().all()

        full_text = f"{name} {description or ''}".lower()
        suggestions = []
        for pattern in patterns:
            similarity = calculate_similarity(full_text, pattern.keywords or [], google_types or [], pattern.google_types or [])
            if similarity > SUGGESTION_THRESHOLD:
                suggestions.append({
                    "type": pattern.effective_type,
                    "confidence": similarity,
                    "reason": f'Basé sur "{pattern.name}" ({round(similarity * 100)}% de similarité)',
                    "keywords": pattern.keywords or [],
                })

        suggestions.sort(key=lambda s: s["confidence"], reverse=True)
        return suggestions

    async def correct_type(self, name: str, corrected_type: str, corrected_by: str) -> int:
        """
        Corrige les motifs dont le nom correspond, ou en crée un nouveau.
        Retourne le nombre de motifs touchés.
        """
        result = await self.db.execute(
            select(EstablishmentLearningPattern).where(EstablishmentLearningPattern.name.ilike(f"%{name}%"))
        )
        patterns = result.scalars().all()

        if patterns:
            for pattern in patterns:
                pattern.corrected_type = corrected_type
                pattern.is_corrected = True
                pattern.corrected_by = corrected_by
            logger.info(f"✅ {len(patterns)} pattern(s) corrigé(s) pour '{name}' -> {corrected_type}")
        else:
            self.db.add(EstablishmentLearningPattern(
                name=name,
                detected_type="unknown",
                corrected_type=corrected_type,
                google_types=[],
                keywords=extract_keywords(name),
                confidence=1.0,
                is_corrected=True,
                corrected_by=corrected_by,
            ))
            logger.info(f"✅ Nouveau pattern corrigé créé pour '{name}' -> {corrected_type}")

        await self.db.commit()
        return len(patterns) or 1

    async def get_stats(self) -> dict:
        total = (await self.db.execute(select(func.count(EstablishmentLearningPattern.id)))).scalar_one()
        corrected = (await self.db.execute(
            select(func.count(EstablishmentLearningPattern.id)).where(EstablishmentLearningPattern.is_corrected.is_(True))
        )).scalar_one()

        result = await self.db.execute(
            select(EstablishmentLearningPattern.detected_type, EstablishmentLearningPattern.corrected_type)
        )
        counts = Counter(corrected_type or detected_type for detected_type, corrected_type in result.all())

        return {
            "totalPatterns": total,
            "correctedPatterns": corrected,
            "accuracy": corrected / total if total > 0 else 0,
            "mostCommonTypes": [{"type": t, "count": c} for t, c in counts.most_common(10)],
        }

    async def list_patterns(self, limit: int = 100, offset: int = 0) -> dict:
        # Deux fois plus de lignes que demandé pour compenser les doublons
        result = await self.db.execute(
            select(EstablishmentLearningPattern)
            .order_by(EstablishmentLearningPattern.created_at.desc())
            .limit(limit * 2)
        )
        rows = result.scalars().all()
        unique = deduplicate_patterns(rows)
        return {
            "patterns": unique[offset:offset + limit],
            "total": len(unique),
            "duplicatesRemoved": len(rows) - len(unique),
        }
