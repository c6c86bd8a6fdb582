"""ArguFight admin back-office backend."""
