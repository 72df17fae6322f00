#!/usr/bin/env python3
"""
Mixtape Synthesizer
Main CLI entry point for serving the API, synthesizing a playlist from a
prompt and inspecting a listener's taste profile.
"""

import sys
import json
import asyncio
import argparse
import logging

from config.settings import Settings
from mixtape.exceptions import MixtapeError, ReauthRequired
from mixtape.services.mixtape_service import MixtapeService
from mixtape.storage.record_store import RecordStore

logger = logging.getLogger(__name__)

def display_playlist_summary(playlist):
    """Display a summary of the synthesized playlist."""
    print("\n" + "="*60)
    print(f"🎵 Playlist Synthesized: {playlist['name']}")
    print("="*60)
    print(f"Description: {playlist['description']}")
    if playlist.get('explanation'):
        print(f"Why: {playlist['explanation']}")
    print(f"Total Tracks: {len(playlist['tracks'])}")
    print(f"Energy Profile: {playlist['energy_profile']}")

    if playlist.get('mood_tags'):
        print(f"Mood: {', '.join(playlist['mood_tags'])}")

    if playlist.get('degraded'):
        print(f"⚠️  Degraded: {', '.join(playlist['failed_providers'])} did not respond")
    if playlist.get('shorter_than_requested'):
        print("⚠️  Shorter than requested: not enough matching tracks")

    print(f"\nTracks:")
    print("-" * 60)
    for i, track in enumerate(playlist['tracks'][:20], 1):
        name = track.get('name') or 'Unknown Track'
        artist = track.get('artist') or 'Unknown Artist'
        sources = ', '.join(sorted(track.get('provider_ids', {})))
        energy = (track.get('audio_features') or {}).get('energy')
        energy_text = f"{energy:.2f}" if energy is not None else "n/a"

        print(f"{i:2d}. {name} - {artist}")
        print(f"    Duration: {track.get('duration_formatted', 'Unknown')} | Energy: {energy_text} | Sources: {sources}")

    if len(playlist['tracks']) > 20:
        print(f"    ... and {len(playlist['tracks']) - 20} more tracks")

    print("-" * 60)

def display_profile(profile):
    """Display a listener's aggregated taste profile."""
    print("\n" + "="*60)
    print(f"👤 Taste Profile: {profile['user_id']}")
    print("="*60)
    print(f"Sources: {', '.join(profile['sources']) or 'none'}")
    print(f"Top Genres: {', '.join(profile['top_genres'][:10]) or 'none'}")

    print(f"\nTop Artists:")
    for i, artist in enumerate(profile['top_artists'][:10], 1):
        print(f"{i:2d}. {artist['name']}")

    averages = profile.get('audio_feature_averages') or {}
    if averages:
        print(f"\nAverage Audio Features:")
        for feature, value in averages.items():
            if value is not None:
                print(f"  {feature.title()}: {value:.2f}")

    print("-" * 60)

async def open_service(settings):
    store = RecordStore(settings.REDIS_URL)
    await store.connect()
    return store, MixtapeService.from_settings(settings, store)

async def synthesize_playlist(args):
    """Synthesize a playlist for a prompt and print it."""
    settings = Settings()
    store, service = await open_service(settings)

    try:
        print(f"Synthesizing for {args.user}: \"{args.prompt}\"...")
        message = await service.synthesize(args.user, args.prompt, args.conversation)
        result = message.to_dict()

        if args.json:
            print(json.dumps(result, indent=2))
        elif result.get('playlist'):
            display_playlist_summary(result['playlist'])
        else:
            print(result['content'])
        return 0

    except ReauthRequired as e:
        print(f"❌ Re-link your {e.provider.value} account: {e}")
        return 2
    except MixtapeError as e:
        print(f"❌ Synthesis failed: {e}")
        return 1
    finally:
        await service.close()
        await store.close()

async def show_profile(args):
    """Show (or rebuild) a listener's taste profile."""
    settings = Settings()
    store, service = await open_service(settings)

    try:
        if args.refresh:
            print(f"Rebuilding profile for {args.user}...")
            profile = await service.aggregator.build_profile(args.user)
        else:
            profile = await service.aggregator.get_profile(args.user, build_if_missing=False)

        if profile is None:
            print(f"No profile stored for {args.user}. Run with --refresh to build one.")
            return 1

        if args.json:
            print(json.dumps(profile.to_dict(), indent=2))
        else:
            display_profile(profile.to_dict())
        return 0

    except MixtapeError as e:
        print(f"❌ Profile unavailable: {e}")
        return 1
    finally:
        await service.close()
        await store.close()

def serve(args):
    import uvicorn
    uvicorn.run("app:app", host=args.host, port=args.port, reload=args.reload)
    return 0

def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Synthesize playlists from a prompt using your connected streaming services",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the REST API
  python main.py serve --port 8000

  # Synthesize a playlist from a prompt
  python main.py synthesize --user u1 --prompt "20-minute workout, building up"

  # Rebuild and show a taste profile
  python main.py profile --user u1 --refresh
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Run the REST API")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Bind port")
    serve_parser.add_argument("--reload", action="store_true", help="Reload on code changes")

    synth_parser = subparsers.add_parser("synthesize", help="Synthesize a playlist from a prompt")
    synth_parser.add_argument("--user", required=True, help="User id owning the connections")
    synth_parser.add_argument("--prompt", required=True, help="Free-text request")
    synth_parser.add_argument("--conversation", default="cli", help="Conversation id (default: cli)")
    synth_parser.add_argument("--json", action="store_true", help="Print the raw message JSON")

    profile_parser = subparsers.add_parser("profile", help="Show a listener's taste profile")
    profile_parser.add_argument("--user", required=True, help="User id")
    profile_parser.add_argument("--refresh", action="store_true", help="Rebuild from connected providers")
    profile_parser.add_argument("--json", action="store_true", help="Print the raw profile JSON")

    args = parser.parse_args()

    settings = Settings()
    logging.basicConfig(level=settings.log_level, format=settings.log_format)

    if args.command == "serve":
        return serve(args)
    elif args.command == "synthesize":
        return asyncio.run(synthesize_playlist(args))
    elif args.command == "profile":
        return asyncio.run(show_profile(args))

    parser.print_help()
    return 1

if __name__ == "__main__":
    sys.exit(main())
