#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Run script for the Secure Password Vault
"""

from password_vault.cli import main

if __name__ == "__main__":
    main()
