"""A simple block file system with a write-back block cache, and its image packer."""