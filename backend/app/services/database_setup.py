"""Provisioning script for the remote ``profiles`` table.

The script is run once in the Supabase SQL editor. It creates the table with
its row level security policies and installs the trigger that creates a
profile for every new auth user, making the very first user an admin.
"""

from __future__ import annotations

from .remote_backend import DEFAULT_STORAGE_BUCKET, PROFILES_TABLE

SETUP_INSTRUCTIONS = (
    "Run this script in the Supabase SQL editor, create a public storage bucket "
    "named '{bucket}', then ask the server to check the database again. "
    "The first account that signs up afterwards becomes the administrator."
)

SETUP_SQL = """
CREATE TABLE IF NOT EXISTS public.{table} (
  id uuid NOT NULL,
  updated_at timestamp with time zone NULL,
  name character varying NULL,
  email character varying NOT NULL,
  role text NULL DEFAULT 'staff'::text,
  CONSTRAINT {table}_pkey PRIMARY KEY (id),
  CONSTRAINT {table}_id_fkey FOREIGN KEY (id) REFERENCES auth.users(id) ON DELETE CASCADE
);

ALTER TABLE public.{table} ENABLE ROW LEVEL SECURITY;

DROP POLICY IF EXISTS "Users can view profiles." ON public.{table};
DROP POLICY IF EXISTS "Users can insert their own profile." ON public.{table};
DROP POLICY IF EXISTS "Users can update profiles." ON public.{table};
DROP POLICY IF EXISTS "Admins can delete profiles." ON public.{table};

CREATE POLICY "Users can view profiles." ON public.{table}
  FOR SELECT USING (
    auth.uid() = id OR
    (SELECT role FROM public.{table} WHERE id = auth.uid()) = 'admin'
  );

CREATE POLICY "Users can insert their own profile." ON public.{table}
  FOR INSERT WITH CHECK (auth.uid() = id);

CREATE POLICY "Users can update profiles." ON public.{table}
  FOR UPDATE USING (
    auth.uid() = id OR
    (SELECT role FROM public.{table} WHERE id = auth.uid()) = 'admin'
  );

CREATE POLICY "Admins can delete profiles." ON public.{table}
  FOR DELETE USING (
    (SELECT role FROM public.{table} WHERE id = auth.uid()) = 'admin'
  );

CREATE OR REPLACE FUNCTION public.handle_new_user()
RETURNS trigger AS $$
DECLARE
  user_count integer;
  new_user_role text;
BEGIN
  SELECT count(*) INTO user_count FROM auth.users WHERE id != NEW.id;
  IF user_count = 0 THEN
    new_user_role := 'admin';
  ELSE
    new_user_role := COALESCE(NEW.raw_user_meta_data->>'role', 'staff');
  END IF;

  INSERT INTO public.{table} (id, name, email, role)
  VALUES (
    NEW.id,
    COALESCE(NEW.raw_user_meta_data->>'name', split_part(NEW.email, '@', 1)),
    NEW.email,
    new_user_role
  );
  RETURN NEW;
END;
$$ LANGUAGE plpgsql SECURITY DEFINER;

DROP TRIGGER IF EXISTS on_auth_user_created ON auth.users;
CREATE TRIGGER on_auth_user_created
  AFTER INSERT ON auth.users
  FOR EACH ROW EXECUTE PROCEDURE public.handle_new_user();
"""


def provisioning_script(table: str = PROFILES_TABLE) -> str:
    return SETUP_SQL.format(table=table).strip() + "\n"


def setup_instructions(bucket: str = DEFAULT_STORAGE_BUCKET) -> str:
    return SETUP_INSTRUCTIONS.format(bucket=bucket)
