"""Generic data structures: directed graph, stack and consistent hash ring."""