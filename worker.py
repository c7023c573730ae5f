#!/usr/bin/env python3
"""
Pipeline Worker - runs queued pipeline functions.
Run as: python worker.py
"""
from src.content_pipeline.runtime import poll_and_execute

if __name__ == "__main__":
    import asyncio
    asyncio.run(poll_and_execute())
