#!/usr/bin/env python3
"""
Seed script: creates demo profiles (one per role), two bookings and the
dealer's acceptance of the complaint terms.
Run after migrations: python scripts/seed.py
"""

import asyncio
import os
import sys
from datetime import datetime, timedelta, timezone
from uuid import uuid4

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from dcre.auth.middleware import hash_token
from dcre.config import settings
from dcre.database import get_engine_url_and_connect_args
from dcre.models import Booking, PolicyAcceptance, Profile


# Demo session tokens - print these for the user
TOKENS = {
    "renter": "tok_demo_renter",
    "dealer": "tok_demo_dealer",
    "private_host": "tok_demo_host",
    "admin": "tok_demo_admin",
    "prime_admin": "tok_demo_prime",
    "super_admin": "tok_demo_super",
}


async def seed():
    url, connect_args = get_engine_url_and_connect_args(settings.database_url)
    engine = create_async_engine(url, connect_args=connect_args)
    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    now = datetime.now(timezone.utc)

    async with async_session() as session:
        profiles = {}
        for role, token in TOKENS.items():
            token_hash = hash_token(token)
            result = await session.execute(select(Profile).where(Profile.token_hash == token_hash))
            profile = result.scalar_one_or_none()
            if profile:
                print(f"Profile for {role} already exists, using existing.")
            else:
                profile = Profile(
                    profile_id=str(uuid4()),
                    full_name=f"Demo {role.replace('_', ' ').title()}",
                    role=role,
                    token_hash=token_hash,
                    created_at=now,
                )
                session.add(profile)
            profiles[role] = profile
        await session.commit()

        renter = profiles["renter"]
        dealer = profiles["dealer"]
        result = await session.execute(
            select(Booking).where(
                Booking.renter_id == renter.profile_id, Booking.dealer_id == dealer.profile_id
            )
        )
        bookings = list(result.scalars().all())
        if bookings:
            print("Bookings already exist, skipping.")
        else:
            bookings = [
                Booking(
                    booking_id=str(uuid4()),
                    renter_id=renter.profile_id,
                    dealer_id=dealer.profile_id,
                    status="completed",
                    start_date=now - timedelta(days=10),
                    end_date=now - timedelta(days=7),
                ),
                Booking(
                    booking_id=str(uuid4()),
                    renter_id=renter.profile_id,
                    dealer_id=dealer.profile_id,
                    status="confirmed",
                    start_date=now - timedelta(days=1),
                    end_date=now + timedelta(days=3),
                ),
            ]
            session.add_all(bookings)

        result = await session.execute(
            select(PolicyAcceptance).where(
                PolicyAcceptance.profile_id == dealer.profile_id,
                PolicyAcceptance.policy_key == settings.complaint_policy_key,
                PolicyAcceptance.policy_version == settings.complaint_policy_version,
            )
        )
        if result.first() is None:
            session.add(
                PolicyAcceptance(
                    acceptance_id=str(uuid4()),
                    profile_id=dealer.profile_id,
                    policy_key=settings.complaint_policy_key,
                    policy_version=settings.complaint_policy_version,
                    accepted_at=now,
                )
            )
        await session.commit()

    await engine.dispose()

    print("Seed complete!")
    for role, token in TOKENS.items():
        print(f"{role}: Authorization: Bearer {token}")
    print(f"Booking IDs: {', '.join(b.booking_id for b in bookings)}")
    print("Example: curl -X POST http://localhost:8000/v1/disputes \\")
    print('  -H "Authorization: Bearer ' + TOKENS["renter"] + '" \\')
    print('  -H "Content-Type: application/json" \\')
    print(f'  -d \'{{"booking_id":"{bookings[0].booking_id}","category":"damage","summary":"Scratch on the rear bumper"}}\'')


if __name__ == "__main__":
    asyncio.run(seed())
