# Value of the "Back" entry in menus whose other choices carry objects.
BACK = "__back__"
