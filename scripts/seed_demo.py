#!/usr/bin/env python3
"""
Seed script to create a demo restaurant with users and a local floor plan
"""

import asyncio
import uuid

from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


async def seed_demo_data():
    """Seed demo data for development"""
    from app.database import SessionLocal, engine, Base
    from app.models.restaurant import Restaurant
    from app.models.table import Table
    from app.models.user import User, UserRole
    from app.services.tenants import create_restaurant

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with SessionLocal() as db:
        # Check if demo restaurant already exists
        from sqlalchemy import select
        result = await db.execute(
            select(Restaurant).where(Restaurant.subdomain == "marios")
        )
        existing = result.scalar_one_or_none()

        if existing:
            print("Demo data already exists. Skipping...")
            return

        print("Creating demo restaurant...")

        # Default settings and the weekly 18:00-22:00 slots come with it
        restaurant = await create_restaurant(db, {
            "name": "Mario's Italian Kitchen",
            "subdomain": "marios",
            "slug": "marios",
            "description": "Neighbourhood Italian, pizza and pasta",
            "address": "123 Main Street, New York, NY 10001",
            "phone": "+15551234567",
            "email": "hello@marios-kitchen.com",
        })

        print(f"Created restaurant: {restaurant.name} (ID: {restaurant.id})")

        # Local floor plan, used because the demo has no Nova reference
        floor = [
            ("T1", 2, "Window"),
            ("T2", 2, "Window"),
            ("T3", 4, "Main"),
            ("T4", 4, "Main"),
            ("T5", 6, "Main"),
            ("P1", 8, "Patio"),
        ]
        for name, seats, location in floor:
            db.add(Table(tenant_id=restaurant.id, name=name, seats=seats, location=location))

        # Create super admin user
        admin_user = User(
            id=uuid.uuid4(),
            email="admin@novaqueue.com",
            hashed_password=pwd_context.hash("admin123"),
            full_name="System Admin",
            role=UserRole.SUPER_ADMIN,
            is_active=True,
        )
        db.add(admin_user)

        # Create restaurant manager user
        manager = User(
            id=uuid.uuid4(),
            tenant_id=restaurant.id,
            email="mario@marios-kitchen.com",
            hashed_password=pwd_context.hash("mario123"),
            full_name="Mario Rossi",
            role=UserRole.MANAGER,
            is_active=True,
        )
        db.add(manager)

        # Create host stand user
        host = User(
            id=uuid.uuid4(),
            tenant_id=restaurant.id,
            email="host@marios-kitchen.com",
            hashed_password=pwd_context.hash("host123"),
            full_name="Front of House",
            role=UserRole.STAFF,
            is_active=True,
        )
        db.add(host)

        await db.commit()

        print(f"""
Demo data created successfully!

Restaurant: Mario's Italian Kitchen
  ID: {restaurant.id}
  Subdomain: marios.localhost:5173
  Path: /marios

Users:
  Super Admin:
    Email: admin@novaqueue.com
    Password: admin123

  Manager:
    Email: mario@marios-kitchen.com
    Password: mario123

  Staff:
    Email: host@marios-kitchen.com
    Password: host123

Tables: {len(floor)} local tables created

Set NOVA_API_BASE_URL and NOVA_API_KEY, and the restaurant's
novaref_id, to use live Nova tables, SMS and payments.
""")


if __name__ == "__main__":
    asyncio.run(seed_demo_data())
