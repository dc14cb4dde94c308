"""Basic usage example for the contribution matching engine."""

import asyncio
import sys
from pathlib import Path

from contrib_match import ContributionSearchService, EngineConfig, EntityType

sys.path.insert(0, str(Path(__file__).parent))


async def basic_search_demo():
    """Demonstrate hybrid search and recommendations."""
    print("Contribution Matching Engine - Basic Usage Demo")
    print("=" * 50)

    corpus_file = Path(__file__).parent / "sample_data" / "sample_corpus.jsonl"
    if not corpus_file.exists():
        print("\nGenerating sample corpus...")
        from sample_data.generate_sample_data import save_sample_corpus
        save_sample_corpus(corpus_file)

    print("\n1. Initializing search service...")
    async with ContributionSearchService.create(
        corpus_path=corpus_file,
        config=EngineConfig.from_env(log_level="WARNING"),
    ) as service:

        stats = service.get_stats()
        for entity_type, counts in stats['corpus'].items():
            print(f"   {entity_type}: {counts['total']} records, "
                  f"{counts['embedding_coverage']:.0f}% embedded")

        print("\n2. Lexical repository search...")
        for query_text in ["machine learning", "kubernetes", "typscript"]:
            results = await service.hybrid_search(
                "repository",
                query_text=query_text,
                text_weight=1.0,
                vector_weight=0.0,
                min_score=0.1,
                limit=3,
            )
            print(f"\n   Query: '{query_text}'")
            for result in results:
                print(f"     {result.rank}. {result.entity.full_name} "
                      f"- Score: {result.combined_score:.3f}")
            if not results:
                print("   No results found")

        print("\n3. Hybrid opportunity search (text + embedding)...")
        anchor = service.corpus.get(EntityType.REPOSITORY, "repo_000")
        results = await service.hybrid_search(
            "opportunity",
            query_text="cache",
            query_embedding=anchor.embedding,
            limit=5,
            filters={"activeOnly": True, "minStars": 100},
        )
        for result in results:
            print(f"     {result.rank}. {result.entity.title} "
                  f"(distance {result.vector_distance:.3f}, score {result.combined_score:.3f})")

        print("\n4. Recommendations for user_001...")
        matches = await service.match_opportunities_for_user("user_001", limit=5)
        for match in matches:
            print(f"     {match.rank}. {match.entity.title} - {match.combined_score:.3f}")
            print(f"        Why: {', '.join(match.reasons) or 'general relevance'}")

        print("\n5. Similar developers...")
        user = service.corpus.get_user("user_001")
        if user.embedding is not None:
            similar = await service.find_similar_users(user.embedding, min_score=0.6)
            for result in similar:
                print(f"     {result.entity.username} - {result.combined_score:.3f}")

        health = await service.health_check()
        print(f"\n6. System status: {health['status']}")
        print(f"   Searches performed: {service.get_stats()['total_searches']}")

    print("\nDemo completed successfully!")


if __name__ == "__main__":
    asyncio.run(basic_search_demo())
